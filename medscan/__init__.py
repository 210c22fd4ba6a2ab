"""medscan: medication-label verification.

Verifies that a photographed medication pouch or bottle label matches the
expected patient, medication and scheduled time, tolerating OCR noise.

Modules:
    - common: Shared image input types and errors
    - ocr: Recognition capability (image -> text + confidence)
    - verification: Normalization, field extraction, matching and validation
    - capture: Capture-session state machine and controller
"""

__version__ = "0.1.0"
