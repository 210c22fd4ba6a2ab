"""Capture session: bounded-retry label capture with manual fallback.

This module drives repeated image acquisition for one scan session, runs each
frame through recognition and label verification, and decides between
success, another attempt, and manual confirmation.

Core Components:
    - types: CaptureSession, events, effects and the success record
    - config_loader: Configuration loading with Pydantic validation
    - state_machine: Pure transition function
    - frame_source: Frame source protocol and scoped device release
    - timeliness: Dose timing relative to schedule
    - controller: CaptureController tying it all together

Example:
    >>> from medscan.capture import CaptureController, StaticFrameSource
    >>> controller = CaptureController(recognizer=create_recognizer())
    >>> session = controller.run_auto(controller.new_session(), expected, StaticFrameSource(frames))
    >>> print(session.state)
"""

from .config_loader import (
    CaptureModuleConfig,
    Config,
    RetryConfig,
    TimelinessConfig,
    TimingConfig,
    get_default_config,
    load_config,
)
from .controller import CaptureController, RecordSink
from .frame_source import FrameSource, StaticFrameSource, device_scope
from .state_machine import MANUAL_MESSAGE, NO_LABEL_MESSAGE, RETRY_MESSAGE, transition
from .timeliness import classify_timeliness
from .types import (
    CaptureMode,
    CaptureSession,
    CaptureState,
    CaptureTimedOut,
    DeviceFailed,
    Effect,
    EffectKind,
    ManualConfirmed,
    ManualDeclined,
    NoTextRecognized,
    RetryDue,
    StartRequested,
    StopRequested,
    SuccessRecord,
    TextRecognized,
    Timeliness,
    Transition,
    ValidationCompleted,
    VerificationMethod,
)

__all__ = [
    # Types
    "CaptureMode",
    "CaptureState",
    "CaptureSession",
    "VerificationMethod",
    "Timeliness",
    "SuccessRecord",
    # Events and effects
    "StartRequested",
    "TextRecognized",
    "NoTextRecognized",
    "CaptureTimedOut",
    "ValidationCompleted",
    "RetryDue",
    "ManualConfirmed",
    "ManualDeclined",
    "StopRequested",
    "DeviceFailed",
    "EffectKind",
    "Effect",
    "Transition",
    # Configuration
    "Config",
    "CaptureModuleConfig",
    "RetryConfig",
    "TimingConfig",
    "TimelinessConfig",
    "load_config",
    "get_default_config",
    # State machine and controller
    "transition",
    "RETRY_MESSAGE",
    "NO_LABEL_MESSAGE",
    "MANUAL_MESSAGE",
    "classify_timeliness",
    "FrameSource",
    "StaticFrameSource",
    "device_scope",
    "CaptureController",
    "RecordSink",
]
