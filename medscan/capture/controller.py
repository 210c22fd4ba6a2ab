"""Capture controller: drives the session state machine against real time.

The controller owns everything the pure state machine does not: the frame
source, the clock, the bounded recognition call, the verifier and the success
record sink. One session is processed sequentially; a capture/validate cycle
completes (or times out) before the next one starts.

Example:
    >>> controller = CaptureController(recognizer=create_recognizer(), record_sink=store.save)
    >>> session = controller.new_session()
    >>> session = controller.run_auto(session, expected, StaticFrameSource(frames))
    >>> if session.state == CaptureState.MANUAL_CONFIRMATION:
    ...     session = controller.confirm_manual(session, expected, taken=True)
"""

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from medscan.common.errors import DeviceUnavailableError, RecognitionFailure
from medscan.common.types import ImageInput
from medscan.ocr.engine import Recognizer
from medscan.ocr.types import OCRReading
from medscan.verification.processor import LabelVerifier
from medscan.verification.types import ExpectedLabel

from .config_loader import CaptureModuleConfig, get_default_config
from .frame_source import FrameSource, device_scope
from .state_machine import transition
from .timeliness import classify_timeliness
from .types import (
    CaptureMode,
    CaptureSession,
    CaptureState,
    CaptureTimedOut,
    DeviceFailed,
    EffectKind,
    ManualConfirmed,
    ManualDeclined,
    NoTextRecognized,
    RetryDue,
    StartRequested,
    StopRequested,
    SuccessRecord,
    TextRecognized,
    ValidationCompleted,
    VerificationMethod,
)

logger = logging.getLogger(__name__)

RecordSink = Callable[[SuccessRecord], None]


class CaptureController:
    """Runs capture sessions: acquire, recognize, verify, retry or fall back.

    Args:
        recognizer: Recognition capability (image → OCRReading)
        verifier: Label verifier; default configuration if None
        record_sink: Called once with the SuccessRecord of a verified session.
            Failures are logged and not retried.
        config: Capture configuration; bundled defaults if None
        clock: Returns the current time in seconds since the epoch
        sleep: Waits the given number of seconds; defaults to waiting on the
            session's stop signal so ``stop(session_id)`` interrupts the throttle
    """

    def __init__(
        self,
        recognizer: Recognizer,
        verifier: Optional[LabelVerifier] = None,
        record_sink: Optional[RecordSink] = None,
        config: Optional[CaptureModuleConfig] = None,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        self.recognizer = recognizer
        self.verifier = verifier or LabelVerifier()
        self.record_sink = record_sink
        self.config = config or get_default_config().capture
        self.clock = clock
        self.sleep = sleep
        self._stops: Dict[str, threading.Event] = {}
        self._stops_lock = threading.Lock()

    @staticmethod
    def new_session(
        mode: CaptureMode = CaptureMode.AUTO, session_id: Optional[str] = None
    ) -> CaptureSession:
        """Create an idle session."""
        return CaptureSession(session_id=session_id or uuid.uuid4().hex, mode=mode)

    def stop(self, session_id: str) -> None:
        """Ask the ``run_auto`` loop of one session to abandon it.

        Safe to call from another thread, and before the loop has started.
        Other sessions on this controller are not affected. The loop releases
        the device and returns the ABANDONED session.
        """
        self._stop_signal(session_id).set()

    def _stop_signal(self, session_id: str) -> threading.Event:
        with self._stops_lock:
            return self._stops.setdefault(session_id, threading.Event())

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_auto(
        self,
        session: CaptureSession,
        expected: ExpectedLabel,
        source: FrameSource,
        scheduled_at: Optional[datetime] = None,
    ) -> CaptureSession:
        """Capture continuously until success, manual fallback or stop.

        Args:
            session: Session to run (normally IDLE)
            expected: What the label should say
            source: Exclusively-owned frame source; opened and closed here
            scheduled_at: Scheduled dose time, used for timeliness

        Returns:
            Session in SUCCESS, MANUAL_CONFIRMATION or ABANDONED, or IDLE with
            a user message when the device could not be acquired
        """
        if session.state.is_terminal:
            return session

        stop = self._stop_signal(session.session_id)
        try:
            with device_scope(source):
                if session.state == CaptureState.IDLE:
                    start = StartRequested(at=self.clock())
                    session = self._dispatch(session, start, expected, scheduled_at, source)
                elif not source.is_open:
                    session = self._open(session, expected, scheduled_at, source)

                while session.state.holds_device:
                    if stop.is_set():
                        session = self._dispatch(
                            session, StopRequested(), expected, scheduled_at, source
                        )
                        break

                    if session.state == CaptureState.RETRY_PENDING:
                        retry = RetryDue(at=self.clock())
                        session = self._dispatch(session, retry, expected, scheduled_at, source)
                        continue

                    self._throttle(session, stop)
                    if stop.is_set():
                        continue

                    now = self.clock()
                    if self._window_elapsed(session, now):
                        session = self._dispatch(
                            session, CaptureTimedOut(at=now), expected, scheduled_at, source
                        )
                        continue

                    frame = source.read()
                    session = self._attempt(session, expected, frame, scheduled_at, source)
        finally:
            with self._stops_lock:
                self._stops.pop(session.session_id, None)

        return session

    def submit_frame(
        self,
        session: CaptureSession,
        expected: ExpectedLabel,
        image: ImageInput,
        scheduled_at: Optional[datetime] = None,
    ) -> CaptureSession:
        """Run one capture/validate cycle on a frame supplied by the caller.

        Used for single manual captures (the caller owns the device). An
        IDLE or RETRY_PENDING session is moved to CAPTURING first.

        Returns:
            Session after the cycle
        """
        if session.state.is_terminal:
            logger.debug(f"Session {session.session_id}: frame ignored, session is finished")
            return session

        if session.state == CaptureState.IDLE:
            session = self._dispatch(
                session, StartRequested(at=self.clock()), expected, scheduled_at
            )
        elif session.state == CaptureState.RETRY_PENDING:
            session = self._dispatch(session, RetryDue(at=self.clock()), expected, scheduled_at)

        return self._attempt(session, expected, image, scheduled_at)

    def confirm_manual(
        self,
        session: CaptureSession,
        expected: ExpectedLabel,
        taken: bool,
        scheduled_at: Optional[datetime] = None,
    ) -> CaptureSession:
        """Resolve a MANUAL_CONFIRMATION session with the user's answer.

        Args:
            session: Session awaiting manual confirmation
            expected: Expected label (ids go into the success record)
            taken: True if the user confirms taking the medication
            scheduled_at: Scheduled dose time, used for timeliness

        Returns:
            SUCCESS (manual) when confirmed, ABANDONED when declined
        """
        event = ManualConfirmed() if taken else ManualDeclined()
        return self._dispatch(session, event, expected, scheduled_at)

    def abandon(
        self, session: CaptureSession, source: Optional[FrameSource] = None
    ) -> CaptureSession:
        """Abandon a session outside ``run_auto`` (no record is emitted)."""
        return self._dispatch(session, StopRequested(), None, None, source)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attempt(
        self,
        session: CaptureSession,
        expected: ExpectedLabel,
        image: Optional[ImageInput],
        scheduled_at: Optional[datetime],
        source: Optional[FrameSource] = None,
    ) -> CaptureSession:
        reading = OCRReading.empty()
        if image is not None:
            try:
                reading = self._recognize(image)
            except RecognitionFailure as e:
                logger.warning(
                    f"Session {session.session_id}: {e.message}; counting attempt as no text"
                )

        at = self.clock()
        if not reading.has_text:
            return self._dispatch(session, NoTextRecognized(at=at), expected, scheduled_at, source)

        session = self._dispatch(
            session, TextRecognized(reading=reading, at=at), expected, scheduled_at, source
        )
        result = self.verifier.verify(reading, expected)
        return self._dispatch(
            session, ValidationCompleted(verdict=result.verdict), expected, scheduled_at, source
        )

    def _recognize(self, image: ImageInput) -> OCRReading:
        """Call the recognizer with a hard time cap.

        Raises:
            RecognitionFailure: If the call raises or exceeds the cap. A call
                that overruns is left to finish in the background.
        """
        timeout = self.config.timing.recognition_timeout_s
        start_time = time.perf_counter()
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self.recognizer.recognize, image)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise RecognitionFailure(
                f"no result within {timeout:.1f}s",
                elapsed_s=time.perf_counter() - start_time,
            ) from e
        except Exception as e:
            raise RecognitionFailure(
                f"{type(e).__name__}: {e}",
                elapsed_s=time.perf_counter() - start_time,
            ) from e
        finally:
            executor.shutdown(wait=False)

    def _dispatch(
        self,
        session: CaptureSession,
        event: object,
        expected: Optional[ExpectedLabel],
        scheduled_at: Optional[datetime],
        source: Optional[FrameSource] = None,
    ) -> CaptureSession:
        """Apply an event and perform the requested effects."""
        result = transition(session, event, self.config)
        new_session = result.session

        if new_session.state != session.state:
            logger.info(
                f"Session {session.session_id}: "
                f"{session.state.value} -> {new_session.state.value}"
            )

        for effect in result.effects:
            if effect.kind == EffectKind.ACQUIRE_DEVICE:
                if source is not None:
                    return self._open(new_session, expected, scheduled_at, source)
            elif effect.kind == EffectKind.RELEASE_DEVICE:
                if source is not None and source.is_open:
                    source.close()
            elif effect.kind == EffectKind.EMIT_SUCCESS:
                self._emit_success(new_session, expected, scheduled_at)
            elif effect.kind == EffectKind.NOTIFY_USER:
                logger.info(f"Session {session.session_id}: user notified: {effect.message}")

        return new_session

    def _open(
        self,
        session: CaptureSession,
        expected: Optional[ExpectedLabel],
        scheduled_at: Optional[datetime],
        source: FrameSource,
    ) -> CaptureSession:
        try:
            source.open()
        except DeviceUnavailableError as e:
            logger.warning(f"Session {session.session_id}: {e.message}")
            return self._dispatch(
                session, DeviceFailed(message=e.user_message), expected, scheduled_at, source
            )
        logger.info(f"Session {session.session_id}: capture device acquired")
        return session

    def _emit_success(
        self,
        session: CaptureSession,
        expected: Optional[ExpectedLabel],
        scheduled_at: Optional[datetime],
    ) -> None:
        timestamp = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        by_ocr = session.resolution == VerificationMethod.OCR

        record = SuccessRecord(
            session_id=session.session_id,
            medication_id=expected.medication_id if expected else None,
            patient_id=expected.patient_id if expected else None,
            verdict=session.last_verdict if by_ocr else None,
            raw_text=session.last_reading.text if by_ocr and session.last_reading else "",
            timestamp=timestamp,
            method=session.resolution,
            timeliness=(
                classify_timeliness(scheduled_at, timestamp, self.config.timeliness)
                if scheduled_at is not None
                else None
            ),
        )
        timeliness = record.timeliness.value if record.timeliness else "n/a"
        logger.info(
            f"Session {session.session_id}: verified by {record.method.value} "
            f"(timeliness={timeliness}), emitting success record"
        )

        if self.record_sink is None:
            return
        try:
            self.record_sink(record)
        except Exception as e:
            logger.error(
                f"Session {session.session_id}: success record sink failed, not retrying: {e}"
            )

    def _throttle(self, session: CaptureSession, stop: threading.Event) -> None:
        if session.last_attempt_at is None:
            return
        wait = self.config.timing.min_attempt_interval_s - (self.clock() - session.last_attempt_at)
        if wait > 0:
            if self.sleep is None:
                stop.wait(wait)
            else:
                self.sleep(wait)

    def _window_elapsed(self, session: CaptureSession, now: float) -> bool:
        if session.mode != CaptureMode.AUTO or session.window_started_at is None:
            return False
        return now - session.window_started_at >= self.config.timing.no_label_window_s
