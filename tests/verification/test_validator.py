"""Unit tests for the required-field validator."""

import pytest

from medscan.ocr.types import OCRReading
from medscan.verification.config_loader import ValidatorConfig, VerificationModuleConfig
from medscan.verification.extractor import FieldExtractor
from medscan.verification.types import ExpectedLabel, ExtractedLabel, FieldKind
from medscan.verification.validator import LabelValidator


@pytest.fixture
def validator():
    """Provide validator with default policy (patient name + time required)."""
    return LabelValidator()


@pytest.fixture
def extractor():
    return FieldExtractor()


def _validate_text(validator, extractor, text, expected, confidence=0.9):
    extracted = extractor.extract(OCRReading(text=text, confidence=confidence))
    return validator.validate(extracted, expected)


class TestScenarios:
    """Test end-to-end label scenarios."""

    def test_matching_label(self, validator, extractor, expected_label, matching_label_text):
        verdict = _validate_text(validator, extractor, matching_label_text, expected_label)

        assert verdict.is_valid is True
        assert verdict.passed_checks == verdict.required_checks == 2
        assert verdict.score == 4
        assert verdict.confidence == pytest.approx(1.0)

    def test_wrong_patient(self, validator, extractor, expected_label):
        verdict = _validate_text(
            validator, extractor, "JANE SMITH\nLISINOPRIL 10MG\n9:00 AM", expected_label
        )

        assert verdict.is_valid is False
        assert verdict.matches[FieldKind.PATIENT_NAME] is False
        assert verdict.matches[FieldKind.MEDICATION_NAME] is True
        assert verdict.matches[FieldKind.TIME] is True
        assert verdict.passed_checks == 1
        assert verdict.failed_fields() == [FieldKind.PATIENT_NAME]

    def test_empty_text(self, validator, extractor, expected_label):
        verdict = _validate_text(validator, extractor, "", expected_label, confidence=0.0)

        assert verdict.is_valid is False
        assert verdict.score == 0
        assert verdict.passed_checks == 0
        assert verdict.confidence == 0.0


class TestRequiredFieldGating:
    """Test only required fields decide validity."""

    def test_optional_fields_failing_do_not_block(self, validator, expected_label):
        extracted = ExtractedLabel(
            confidence=0.9,
            patient_name="JOHN DOE",
            printed_time="9:00 AM",
            medication_name="METFORMIN",
            dosage="500MG",
        )

        verdict = validator.validate(extracted, expected_label)

        assert verdict.is_valid is True
        assert verdict.score == 2
        assert verdict.matches[FieldKind.MEDICATION_NAME] is False
        assert verdict.matches[FieldKind.DOSAGE] is False

    def test_optional_fields_passing_do_not_rescue(self, validator, expected_label):
        extracted = ExtractedLabel(
            confidence=0.9,
            patient_name="JOHN DOE",
            printed_time="9:00 PM",
            medication_name="LISINOPRIL",
            dosage="10MG",
        )

        verdict = validator.validate(extracted, expected_label)

        assert verdict.is_valid is False
        assert verdict.score == 3
        assert verdict.passed_checks == 1

    def test_missing_required_field_fails(self, validator, expected_label):
        extracted = ExtractedLabel(confidence=0.9, patient_name="JOHN DOE")

        verdict = validator.validate(extracted, expected_label)

        assert verdict.is_valid is False
        assert verdict.result_for(FieldKind.TIME).score == 0.0

    def test_configured_required_fields(self, expected_label):
        config = VerificationModuleConfig(
            validator=ValidatorConfig(required_fields=[FieldKind.PATIENT_NAME])
        )
        validator = LabelValidator(config)
        extracted = ExtractedLabel(confidence=0.9, patient_name="John Doe")

        verdict = validator.validate(extracted, expected_label)

        assert verdict.is_valid is True
        assert verdict.required_checks == 1

    def test_count_invariant(self, validator, expected_label):
        extracted = ExtractedLabel(confidence=0.5, patient_name="JOHN DOE", dosage="10 MG")

        verdict = validator.validate(extracted, expected_label)

        assert verdict.passed_checks <= verdict.required_checks <= len(FieldKind)
        assert len(verdict.results) == len(FieldKind)
        assert verdict.score == sum(verdict.matches.values())


class TestNearMissLabels:
    """Test labels whose fields only contain the expected text inside longer words."""

    def test_patient_inside_longer_names_is_invalid(self, validator, extractor):
        expected = ExpectedLabel("Lisinopril", "10mg", "Lee, Ann", "9:00 AM")

        verdict = _validate_text(
            validator, extractor, "JOANN LEEDS\nLISINOPRIL 10MG\n9:00 AM", expected
        )

        assert verdict.is_valid is False
        assert verdict.matches[FieldKind.PATIENT_NAME] is False
        assert verdict.matches[FieldKind.TIME] is True

    def test_time_inside_longer_time_is_invalid(self, validator, extractor):
        expected = ExpectedLabel("Lisinopril", "10mg", "Doe, John", "1:00 PM")

        verdict = _validate_text(
            validator, extractor, "JOHN DOE\nLISINOPRIL 10MG\n11:00 PM", expected
        )

        assert verdict.is_valid is False
        assert verdict.matches[FieldKind.TIME] is False

    def test_strength_inside_longer_strength_fails(self, validator, extractor, expected_label):
        verdict = _validate_text(
            validator, extractor, "JOHN DOE\nLISINOPRIL 110MG\n9:00 AM", expected_label
        )

        assert verdict.matches[FieldKind.DOSAGE] is False
        assert verdict.is_valid is True
