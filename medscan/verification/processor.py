"""Label verifier with 3-stage checking pipeline.

This module orchestrates the verification of one OCR reading against the
expected record:
    1. READING CHECK: the reading carries text (low confidence is logged only)
    2. FIELD EXTRACTION: structured fields parsed from the text
    3. VALIDATION: field matching and the required-field policy

Example:
    >>> from medscan.verification import ExpectedLabel, LabelVerifier
    >>> verifier = LabelVerifier()
    >>> expected = ExpectedLabel("Lisinopril", "10mg", "Doe, John", "9:00 AM")
    >>> result = verifier.verify(OCRReading("JOHN DOE\\nLISINOPRIL 10MG\\n9:00 AM", 0.9), expected)
    >>> if result.is_pass():
    ...     print(result.verdict.passed_checks)
"""

import logging
import time
from pathlib import Path
from typing import Optional

from medscan.common.types import ImageInput
from medscan.ocr.engine import Recognizer
from medscan.ocr.types import OCRReading

from .config_loader import Config, get_default_config, load_config
from .extractor import FieldExtractor
from .normalizer import TextNormalizer
from .types import (
    DecisionStatus,
    ExpectedLabel,
    ExtractedLabel,
    FieldKind,
    LabelCheckResult,
    RejectionReason,
    ValidationVerdict,
)
from .validator import LabelValidator

logger = logging.getLogger(__name__)


class LabelVerifier:
    """Main verification class with 3-stage pipeline.

    Args:
        config_path: Optional path to config YAML file. If None, uses default config.
        config: Optional pre-loaded Config; takes precedence over ``config_path``.

    Attributes:
        config: Full configuration object
        extractor: Field extractor
        validator: Label validator (owns the field matcher)
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[Config] = None):
        if config is not None:
            self.config: Config = config
        elif config_path is None:
            self.config = get_default_config()
        else:
            self.config = load_config(config_path)

        module = self.config.verification
        self.extractor = FieldExtractor(
            config=module.extractor, normalizer=TextNormalizer(module.normalizer)
        )
        self.validator = LabelValidator(config=module)

        logger.info(
            f"LabelVerifier initialized: required_fields="
            f"{[kind.value for kind in self.validator.required_fields]}"
        )

    def verify(self, reading: OCRReading, expected: ExpectedLabel) -> LabelCheckResult:
        """Check one OCR reading against the expected record.

        Args:
            reading: Text and confidence from the recognition capability
            expected: What the label should say

        Returns:
            LabelCheckResult with decision, extracted fields and verdict
        """
        start_time = time.perf_counter()

        # STAGE 1: READING CHECK
        if not reading.has_text:
            return self._create_rejection(
                reading=reading,
                extracted=ExtractedLabel(confidence=reading.confidence),
                verdict=self._empty_verdict(),
                reason=RejectionReason(
                    code="LBL-E001",
                    constant="NO_TEXT_DETECTED",
                    message="No text was recognized on the label",
                    stage="STAGE_1",
                ),
                processing_time_ms=(time.perf_counter() - start_time) * 1000,
            )

        min_confidence = self.config.verification.validator.min_ocr_confidence
        if reading.confidence < min_confidence:
            logger.warning(
                f"Low OCR confidence {reading.confidence:.2f} "
                f"(below {min_confidence:.2f}); continuing with validation"
            )

        # STAGE 2: FIELD EXTRACTION
        extracted = self.extractor.extract(reading)

        # STAGE 3: VALIDATION
        verdict = self.validator.validate(extracted, expected)
        processing_time_ms = (time.perf_counter() - start_time) * 1000

        if not verdict.is_valid:
            failed = [kind.value for kind in verdict.failed_fields()]
            return self._create_rejection(
                reading=reading,
                extracted=extracted,
                verdict=verdict,
                reason=RejectionReason(
                    code="LBL-E002",
                    constant="REQUIRED_FIELD_MISMATCH",
                    message=f"Label did not match expected record; mismatched fields: {failed}",
                    stage="STAGE_3",
                ),
                processing_time_ms=processing_time_ms,
            )

        return LabelCheckResult(
            decision=DecisionStatus.PASS,
            reading=reading,
            extracted=extracted,
            verdict=verdict,
            rejection_reason=RejectionReason(
                code="LBL-S000",
                constant="SUCCESS",
                message="Label matches the expected record",
                stage="STAGE_3",
                severity="INFO",
            ),
            processing_time_ms=processing_time_ms,
        )

    def verify_image(
        self, image: ImageInput, expected: ExpectedLabel, recognizer: Recognizer
    ) -> LabelCheckResult:
        """Recognize an image and verify the resulting reading.

        Args:
            image: Decoded array, encoded bytes, or data URL
            expected: What the label should say
            recognizer: Recognition capability

        Returns:
            LabelCheckResult for the recognized text

        Raises:
            InvalidImageError: If the recognizer cannot decode the image
        """
        reading = recognizer.recognize(image)
        return self.verify(reading, expected)

    def _empty_verdict(self) -> ValidationVerdict:
        required = self.validator.required_fields
        return ValidationVerdict(
            is_valid=False,
            matches={kind: False for kind in FieldKind},
            score=0,
            confidence=0.0,
            required_checks=len(required),
            passed_checks=0,
        )

    @staticmethod
    def _create_rejection(
        reading: OCRReading,
        extracted: ExtractedLabel,
        verdict: ValidationVerdict,
        reason: RejectionReason,
        processing_time_ms: float = 0.0,
    ) -> LabelCheckResult:
        """Create a REJECT LabelCheckResult."""
        logger.debug(f"Label rejected: {reason.code} {reason.constant}")
        return LabelCheckResult(
            decision=DecisionStatus.REJECT,
            reading=reading,
            extracted=extracted,
            verdict=verdict,
            rejection_reason=reason,
            processing_time_ms=processing_time_ms,
        )
