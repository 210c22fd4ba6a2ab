"""Pure state machine of a capture session.

``transition(session, event, config)`` returns the next session value and
the side effects the controller must perform. It never touches devices,
clocks or sinks, so every path can be exercised with plain values.

State diagram:

    IDLE --start--> CAPTURING --text--> VALIDATING --valid--> SUCCESS
                      |   ^                 |
          no label /  |   | retry due       | invalid
          timeout     v   |                 v
                    RETRY_PENDING <---------+  (attempt_count < 3)

    VALIDATING --invalid, 3rd failure--------------> MANUAL_CONFIRMATION
    CAPTURING  --timeout, 3rd no-label window------> MANUAL_CONFIRMATION
    MANUAL_CONFIRMATION --confirmed--> SUCCESS, --declined/stop--> ABANDONED
    IDLE/CAPTURING/VALIDATING/RETRY_PENDING --stop--> ABANDONED

The two three-strike counters (validation failures, no-label timeouts) are
independent. SUCCESS and ABANDONED ignore every event, so a success record
is emitted at most once per session.
"""

import logging
from dataclasses import replace
from typing import Optional

from .config_loader import CaptureModuleConfig
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
    TextRecognized,
    Transition,
    ValidationCompleted,
    VerificationMethod,
)

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "The label didn't match. Please try again."
NO_LABEL_MESSAGE = "No label detected. Hold the label steady in front of the camera."
MANUAL_MESSAGE = (
    "We couldn't verify the label automatically. "
    "Please confirm whether you took this medication."
)


def transition(
    session: CaptureSession,
    event: object,
    config: Optional[CaptureModuleConfig] = None,
) -> Transition:
    """Apply one event to a session.

    Args:
        session: Current session value
        event: One of the event types in ``medscan.capture.types``
        config: Retry budgets and timers (defaults if None)

    Returns:
        Transition with the new session and the effects to perform. Events
        that do not apply to the current state leave the session unchanged.
    """
    config = config or CaptureModuleConfig()
    state = session.state

    if state.is_final:
        return _ignore(session, event)

    if isinstance(event, StopRequested):
        return _abandon(session)

    if state == CaptureState.IDLE:
        if isinstance(event, StartRequested):
            return Transition(
                session=replace(
                    session,
                    state=CaptureState.CAPTURING,
                    started_at=session.started_at if session.started_at is not None else event.at,
                    window_started_at=event.at,
                    user_message=None,
                ),
                effects=[Effect(EffectKind.ACQUIRE_DEVICE)],
            )
        if isinstance(event, DeviceFailed):
            return _device_failed(session, event)

    elif state == CaptureState.CAPTURING:
        if isinstance(event, TextRecognized):
            return Transition(
                session=replace(
                    session,
                    state=CaptureState.VALIDATING,
                    last_reading=event.reading,
                    last_attempt_at=event.at,
                )
            )
        if isinstance(event, NoTextRecognized):
            if session.mode == CaptureMode.MANUAL or _window_elapsed(session, event.at, config):
                return _no_label(session, event.at, config)
            return Transition(session=replace(session, last_attempt_at=event.at))
        if isinstance(event, CaptureTimedOut):
            return _no_label(session, event.at, config)
        if isinstance(event, DeviceFailed):
            return _device_failed(session, event)

    elif state == CaptureState.VALIDATING:
        if isinstance(event, ValidationCompleted):
            if event.verdict.is_valid:
                return _succeed(
                    replace(session, last_verdict=event.verdict), VerificationMethod.OCR
                )
            return _validation_failed(replace(session, last_verdict=event.verdict), config)

    elif state == CaptureState.RETRY_PENDING:
        if isinstance(event, RetryDue):
            return Transition(
                session=replace(
                    session, state=CaptureState.CAPTURING, window_started_at=event.at
                )
            )
        if isinstance(event, DeviceFailed):
            return _device_failed(session, event)

    elif state == CaptureState.MANUAL_CONFIRMATION:
        if isinstance(event, ManualConfirmed):
            return _succeed(session, VerificationMethod.MANUAL)
        if isinstance(event, ManualDeclined):
            return _abandon(session)

    return _ignore(session, event)


def _window_elapsed(session: CaptureSession, at: float, config: CaptureModuleConfig) -> bool:
    if session.window_started_at is None:
        return False
    return at - session.window_started_at >= config.timing.no_label_window_s


def _no_label(session: CaptureSession, at: float, config: CaptureModuleConfig) -> Transition:
    count = session.no_label_count + 1
    session = replace(session, no_label_count=count, last_attempt_at=at)

    if count >= config.retry.max_no_label_attempts:
        logger.info(
            f"Session {session.session_id}: no label detected {count} times, "
            f"falling back to manual confirmation"
        )
        return _to_manual(session)

    logger.info(f"Session {session.session_id}: no label detected ({count})")
    return Transition(
        session=replace(session, state=CaptureState.RETRY_PENDING, user_message=NO_LABEL_MESSAGE),
        effects=[Effect(EffectKind.NOTIFY_USER, NO_LABEL_MESSAGE)],
    )


def _validation_failed(session: CaptureSession, config: CaptureModuleConfig) -> Transition:
    count = session.attempt_count + 1
    session = replace(session, attempt_count=count)

    if count >= config.retry.max_validation_attempts:
        logger.info(
            f"Session {session.session_id}: validation failed {count} times, "
            f"falling back to manual confirmation"
        )
        return _to_manual(session)

    return Transition(
        session=replace(session, state=CaptureState.RETRY_PENDING, user_message=RETRY_MESSAGE),
        effects=[Effect(EffectKind.NOTIFY_USER, RETRY_MESSAGE)],
    )


def _to_manual(session: CaptureSession) -> Transition:
    return Transition(
        session=replace(
            session, state=CaptureState.MANUAL_CONFIRMATION, user_message=MANUAL_MESSAGE
        ),
        effects=[
            Effect(EffectKind.RELEASE_DEVICE),
            Effect(EffectKind.NOTIFY_USER, MANUAL_MESSAGE),
        ],
    )


def _succeed(session: CaptureSession, method: VerificationMethod) -> Transition:
    effects = []
    if session.state.holds_device:
        effects.append(Effect(EffectKind.RELEASE_DEVICE))
    if not session.success_emitted:
        effects.append(Effect(EffectKind.EMIT_SUCCESS))
    return Transition(
        session=replace(
            session,
            state=CaptureState.SUCCESS,
            success_emitted=True,
            resolution=method,
            user_message=None,
        ),
        effects=effects,
    )


def _abandon(session: CaptureSession) -> Transition:
    effects = [Effect(EffectKind.RELEASE_DEVICE)] if session.state.holds_device else []
    logger.info(f"Session {session.session_id}: abandoned in state {session.state.value}")
    return Transition(session=replace(session, state=CaptureState.ABANDONED), effects=effects)


def _device_failed(session: CaptureSession, event: DeviceFailed) -> Transition:
    effects = [Effect(EffectKind.RELEASE_DEVICE)] if session.state.holds_device else []
    effects.append(Effect(EffectKind.NOTIFY_USER, event.message))
    return Transition(
        session=replace(session, state=CaptureState.IDLE, user_message=event.message),
        effects=effects,
    )


def _ignore(session: CaptureSession, event: object) -> Transition:
    logger.debug(
        f"Session {session.session_id}: ignoring {type(event).__name__} "
        f"in state {session.state.value}"
    )
    return Transition(session=session)
