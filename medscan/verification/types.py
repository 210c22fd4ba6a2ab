"""Type definitions for label verification.

This module defines the core data structures of the verification pipeline:
the fields extracted from a label, the expected record supplied by the scan
session, per-field match results and the overall verdict.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from medscan.ocr.types import OCRReading


class FieldKind(Enum):
    """Label fields compared against the expected record."""

    MEDICATION_NAME = "medication_name"
    DOSAGE = "dosage"
    PATIENT_NAME = "patient_name"
    TIME = "time"

    @property
    def is_short(self) -> bool:
        """Short fields get the numeric-token rung of the matching ladder."""
        return self in (FieldKind.DOSAGE, FieldKind.TIME)


class MatchMethod(Enum):
    """Rung of the matching ladder that decided a field match."""

    EXACT = "exact"
    SUBSTRING = "substring"
    TOKEN_OVERLAP = "token_overlap"
    NUMERIC = "numeric"
    EDIT_DISTANCE = "edit_distance"
    MISSING = "missing"  # Expected or extracted value was empty


class DecisionStatus(Enum):
    """Decision status for a label check."""

    PASS = "pass"
    REJECT = "reject"


@dataclass
class RejectionReason:
    """Structured outcome reason with error code and context.

    Attributes:
        code: Error code (e.g., "LBL-E001")
        constant: String constant for programmatic checking (e.g., "NO_TEXT_DETECTED")
        message: Operator-facing explanation (field names only, never values)
        stage: Pipeline stage where the decision was made (e.g., "STAGE_1")
        severity: Severity level ("ERROR", "WARNING" or "INFO")
    """

    code: str
    constant: str
    message: str
    stage: str
    severity: str = "ERROR"


@dataclass
class ExtractedLabel:
    """Structured fields parsed from one OCR reading.

    Any field may be None when no extraction rule matched. The candidate
    lists hold every medication name / dosage found; the scalar field holds
    the first one.

    Attributes:
        confidence: Copied from the OCR reading (extraction does not discount)
    """

    confidence: float
    medication_name: Optional[str] = None
    dosage: Optional[str] = None
    patient_name: Optional[str] = None
    instructions: Optional[str] = None
    pharmacy: Optional[str] = None
    prescriber: Optional[str] = None
    printed_time: Optional[str] = None
    medication_names: List[str] = field(default_factory=list)
    dosages: List[str] = field(default_factory=list)

    def value_for(self, kind: FieldKind) -> Optional[str]:
        """Get the primary extracted value compared for a field kind."""
        if kind == FieldKind.TIME:
            return self.printed_time
        return getattr(self, kind.value)

    def candidates_for(self, kind: FieldKind) -> List[str]:
        """Get every extracted candidate for a field kind, primary first."""
        if kind == FieldKind.MEDICATION_NAME and self.medication_names:
            return list(self.medication_names)
        if kind == FieldKind.DOSAGE and self.dosages:
            return list(self.dosages)
        value = self.value_for(kind)
        return [value] if value else []

    def is_empty(self) -> bool:
        """Check if no comparable field was extracted."""
        return all(self.value_for(kind) is None for kind in FieldKind)


@dataclass(frozen=True)
class ExpectedLabel:
    """What the label should say, supplied by the scan session.

    Attributes:
        medication_name: Expected drug name
        dosage: Expected strength (e.g., "10mg")
        patient_name: Patient name formatted "Last, First"
        scheduled_time: Localized display time (e.g., "9:00 AM"), not ISO
        medication_id: Medication record id, carried into the success record
        patient_id: Patient record id, carried into the success record
    """

    medication_name: str
    dosage: str
    patient_name: str
    scheduled_time: str
    medication_id: Optional[str] = None
    patient_id: Optional[str] = None

    def value_for(self, kind: FieldKind) -> str:
        """Get the expected value for a field kind."""
        if kind == FieldKind.TIME:
            return self.scheduled_time
        return getattr(self, kind.value)


@dataclass(frozen=True)
class FieldMatchResult:
    """Outcome of comparing one expected field against extracted text.

    Attributes:
        field: Field that was compared
        passed: Whether the field counts as matching
        score: Similarity score (0.0-1.0)
        method: Ladder rung that produced the score
    """

    field: FieldKind
    passed: bool
    score: float
    method: MatchMethod


@dataclass
class ValidationVerdict:
    """Overall pass/fail verdict for one label.

    Attributes:
        is_valid: True only when every required field passed
        matches: Pass/fail per field
        score: Number of passed fields (required and optional), for display
        confidence: Mean of all field scores (0.0-1.0)
        required_checks: Number of required fields
        passed_checks: Number of required fields that passed
        results: Per-field match results
    """

    is_valid: bool
    matches: Dict[FieldKind, bool]
    score: int
    confidence: float
    required_checks: int
    passed_checks: int
    results: List[FieldMatchResult] = field(default_factory=list)

    def failed_fields(self) -> List[FieldKind]:
        """List fields whose match failed."""
        return [kind for kind, passed in self.matches.items() if not passed]

    def result_for(self, kind: FieldKind) -> Optional[FieldMatchResult]:
        """Get the match result for a field kind."""
        for result in self.results:
            if result.field == kind:
                return result
        return None


@dataclass
class LabelCheckResult:
    """Result of running one OCR reading through the verifier.

    Attributes:
        decision: Final decision (PASS or REJECT)
        reading: OCR reading that was checked
        extracted: Fields parsed from the reading
        verdict: Validation verdict against the expected record
        rejection_reason: Structured outcome reason
        processing_time_ms: Total processing time in milliseconds
    """

    decision: DecisionStatus
    reading: OCRReading
    extracted: ExtractedLabel
    verdict: ValidationVerdict
    rejection_reason: RejectionReason
    processing_time_ms: float

    def is_pass(self) -> bool:
        """Check if decision is PASS."""
        return self.decision == DecisionStatus.PASS

    def is_reject(self) -> bool:
        """Check if decision is REJECT."""
        return self.decision == DecisionStatus.REJECT
