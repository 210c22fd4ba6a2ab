"""Type definitions for the capture session.

A capture session drives repeated label photographs until the label verifies,
the retry budgets run out (manual confirmation), or the user stops. The
session is an immutable value: every transition returns a new instance, so
the retry counters live with the session and nowhere else.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from medscan.ocr.types import OCRReading
from medscan.verification.types import ValidationVerdict


class CaptureMode(Enum):
    """How frames are acquired."""

    AUTO = "auto"  # Continuous capture, throttled, with a no-label window
    MANUAL = "manual"  # One capture per user action, no window


class CaptureState(Enum):
    """States of the capture state machine."""

    IDLE = "idle"
    CAPTURING = "capturing"
    VALIDATING = "validating"
    RETRY_PENDING = "retry_pending"
    SUCCESS = "success"
    MANUAL_CONFIRMATION = "manual_confirmation"
    ABANDONED = "abandoned"

    @property
    def holds_device(self) -> bool:
        """States in which the capture device is owned by the session."""
        return self in (
            CaptureState.CAPTURING,
            CaptureState.VALIDATING,
            CaptureState.RETRY_PENDING,
        )

    @property
    def is_final(self) -> bool:
        """States that ignore every further event."""
        return self in (CaptureState.SUCCESS, CaptureState.ABANDONED)

    @property
    def is_terminal(self) -> bool:
        """States that end automatic capture.

        MANUAL_CONFIRMATION is terminal for the capture loop but still
        accepts the user's confirm/decline answer.
        """
        return self.is_final or self == CaptureState.MANUAL_CONFIRMATION


class VerificationMethod(Enum):
    """How a successful session was resolved."""

    OCR = "ocr"
    MANUAL = "manual"


class Timeliness(Enum):
    """When the dose was verified relative to its schedule."""

    ON_TIME = "on_time"
    LATE = "late"
    MISSED = "missed"


@dataclass(frozen=True)
class CaptureSession:
    """State of one scan session.

    Attributes:
        session_id: Identifier carried into the success record
        mode: Auto or manual capture
        state: Current state machine state
        attempt_count: Validation failures so far (0-3)
        no_label_count: Capture timeouts without readable text so far (0-3)
        started_at: Clock time the session first started capturing
        last_attempt_at: Clock time of the latest recognition attempt
        window_started_at: Start of the current no-label window
        last_reading: Latest OCR reading
        last_verdict: Latest validation verdict
        success_emitted: True once the success record was emitted
        resolution: How the session succeeded (None until SUCCESS)
        user_message: Message currently shown to the user
    """

    session_id: str
    mode: CaptureMode = CaptureMode.AUTO
    state: CaptureState = CaptureState.IDLE
    attempt_count: int = 0
    no_label_count: int = 0
    started_at: Optional[float] = None
    last_attempt_at: Optional[float] = None
    window_started_at: Optional[float] = None
    last_reading: Optional[OCRReading] = None
    last_verdict: Optional[ValidationVerdict] = None
    success_emitted: bool = False
    resolution: Optional[VerificationMethod] = None
    user_message: Optional[str] = None


@dataclass(frozen=True)
class SuccessRecord:
    """Record handed to the session record sink on success.

    Attributes:
        session_id: Scan session identifier
        medication_id: Medication record id from the expected label
        patient_id: Patient record id from the expected label
        verdict: Validation verdict (None for manual confirmation)
        raw_text: Recognized label text ("" for manual confirmation)
        timestamp: UTC time of verification
        method: OCR or manual confirmation
        timeliness: Dose timing relative to schedule, if a schedule was given
    """

    session_id: str
    medication_id: Optional[str]
    patient_id: Optional[str]
    verdict: Optional[ValidationVerdict]
    raw_text: str
    timestamp: datetime
    method: VerificationMethod
    timeliness: Optional[Timeliness] = None


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class StartRequested:
    """User opened the scanner (at: clock time)."""

    at: float


@dataclass(frozen=True)
class TextRecognized:
    """A frame produced non-empty text."""

    reading: OCRReading
    at: float


@dataclass(frozen=True)
class NoTextRecognized:
    """A frame produced no text (or recognition failed)."""

    at: float


@dataclass(frozen=True)
class CaptureTimedOut:
    """The no-label window elapsed without readable text."""

    at: float


@dataclass(frozen=True)
class ValidationCompleted:
    verdict: ValidationVerdict


@dataclass(frozen=True)
class RetryDue:
    at: float


@dataclass(frozen=True)
class ManualConfirmed:
    pass


@dataclass(frozen=True)
class ManualDeclined:
    pass


@dataclass(frozen=True)
class StopRequested:
    pass


@dataclass(frozen=True)
class DeviceFailed:
    """The capture device could not be acquired or was lost."""

    message: str


# ----------------------------------------------------------------------
# Effects
# ----------------------------------------------------------------------


class EffectKind(Enum):
    """Side effects requested by a transition, performed by the controller."""

    ACQUIRE_DEVICE = "acquire_device"
    RELEASE_DEVICE = "release_device"
    EMIT_SUCCESS = "emit_success"
    NOTIFY_USER = "notify_user"


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    message: Optional[str] = None


@dataclass(frozen=True)
class Transition:
    """Result of applying one event: the new session and its side effects."""

    session: CaptureSession
    effects: List[Effect] = field(default_factory=list)

    def has(self, kind: EffectKind) -> bool:
        """Check if the transition requested an effect of this kind."""
        return any(effect.kind == kind for effect in self.effects)
