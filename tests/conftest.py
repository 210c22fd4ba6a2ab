"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import pytest

from medscan.verification.types import ExpectedLabel


@pytest.fixture
def expected_label():
    """Fixture providing the expected record of a typical morning dose."""
    return ExpectedLabel(
        medication_name="Lisinopril",
        dosage="10mg",
        patient_name="Doe, John",
        scheduled_time="9:00 AM",
        medication_id="med-001",
        patient_id="pat-001",
    )


@pytest.fixture
def matching_label_text():
    """Fixture providing OCR text of a label that matches ``expected_label``."""
    return "JOHN DOE\nLISINOPRIL 10MG\n9:00 AM TABLET"


@pytest.fixture
def sample_label_image():
    """Fixture providing a synthetic pouch label (BGR, dark text on white)."""
    import cv2
    import numpy as np

    image = np.ones((300, 600, 3), dtype=np.uint8) * 255
    for row, line in enumerate(["JOHN DOE", "LISINOPRIL 10MG", "9:00 AM"]):
        cv2.putText(
            image,
            line,
            (20, 70 + row * 80),
            cv2.FONT_HERSHEY_SIMPLEX,
            1.5,
            (0, 0, 0),
            3,
        )
    return image


@pytest.fixture
def sample_label_png(sample_label_image):
    """Fixture providing ``sample_label_image`` encoded as PNG bytes."""
    import cv2

    ok, encoded = cv2.imencode(".png", sample_label_image)
    assert ok
    return encoded.tobytes()
