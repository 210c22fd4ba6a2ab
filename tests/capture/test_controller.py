"""Unit tests for the capture controller.

The clock is faked and ``sleep`` advances it, so throttling and the
no-label window run instantly. Recognition still goes through the real
bounded worker thread.
"""

import logging
import threading
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from medscan.capture.config_loader import CaptureModuleConfig, TimingConfig
from medscan.capture.controller import CaptureController
from medscan.capture.frame_source import StaticFrameSource
from medscan.capture.state_machine import MANUAL_MESSAGE, transition
from medscan.capture.types import (
    CaptureMode,
    CaptureState,
    StartRequested,
    Timeliness,
    VerificationMethod,
)
from medscan.common.errors import DeviceUnavailableError
from medscan.ocr.types import OCRReading


class FakeClock:
    """Manually advanced clock; ``sleep`` moves time forward."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class UnavailableSource(StaticFrameSource):
    """Source whose device can never be acquired."""

    def open(self) -> None:
        raise DeviceUnavailableError("permission denied", device=self.name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def records():
    return []


@pytest.fixture
def recognizer():
    return Mock()


@pytest.fixture
def controller(recognizer, records, clock):
    """Controller with a mocked recognizer, list sink and fake clock."""
    return CaptureController(
        recognizer=recognizer,
        record_sink=records.append,
        config=CaptureModuleConfig(),
        clock=clock,
        sleep=clock.sleep,
    )


WRONG_PATIENT_TEXT = "JANE SMITH\nLISINOPRIL 10MG\n9:00 AM"


class TestRunAuto:
    """Test the continuous capture loop."""

    def test_first_frame_verifies(
        self, controller, recognizer, records, expected_label, matching_label_text
    ):
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)
        source = StaticFrameSource([b"frame-1", b"frame-2"])

        session = controller.run_auto(controller.new_session(), expected_label, source)

        assert session.state == CaptureState.SUCCESS
        assert session.resolution == VerificationMethod.OCR
        assert not source.is_open
        assert recognizer.recognize.call_count == 1

        assert len(records) == 1
        record = records[0]
        assert record.session_id == session.session_id
        assert record.medication_id == "med-001"
        assert record.patient_id == "pat-001"
        assert record.method == VerificationMethod.OCR
        assert record.raw_text == matching_label_text
        assert record.verdict.is_valid is True
        assert record.timeliness is None

    def test_three_failed_validations_fall_back_to_manual(
        self, controller, recognizer, records, clock, expected_label
    ):
        recognizer.recognize.return_value = OCRReading(WRONG_PATIENT_TEXT, 0.9)
        source = StaticFrameSource([b"frame"] * 5)

        session = controller.run_auto(controller.new_session(), expected_label, source)

        assert session.state == CaptureState.MANUAL_CONFIRMATION
        assert session.attempt_count == 3
        assert session.user_message == MANUAL_MESSAGE
        assert recognizer.recognize.call_count == 3
        assert not source.is_open
        assert records == []
        # Attempts are spaced by the minimum interval
        assert clock.now == pytest.approx(4.0)

    def test_no_label_windows_fall_back_to_manual(self, controller, clock, records, expected_label):
        source = StaticFrameSource([])

        session = controller.run_auto(controller.new_session(), expected_label, source)

        assert session.state == CaptureState.MANUAL_CONFIRMATION
        assert session.no_label_count == 3
        assert session.attempt_count == 0
        assert clock.now == pytest.approx(90.0)
        assert not source.is_open
        assert records == []

    def test_recognizer_error_counts_as_no_text(
        self, controller, recognizer, records, expected_label, matching_label_text, caplog
    ):
        recognizer.recognize.side_effect = [
            RuntimeError("engine crashed"),
            OCRReading(matching_label_text, 0.9),
        ]
        source = StaticFrameSource([b"frame-1", b"frame-2"])

        with caplog.at_level(logging.WARNING, logger="medscan.capture.controller"):
            session = controller.run_auto(controller.new_session(), expected_label, source)

        assert session.state == CaptureState.SUCCESS
        assert session.no_label_count == 0
        assert len(records) == 1
        assert "engine crashed" in caplog.text

    def test_device_unavailable(self, controller, recognizer, records, expected_label):
        source = UnavailableSource([b"frame"], name="camera-0")

        session = controller.run_auto(controller.new_session(), expected_label, source)

        assert session.state == CaptureState.IDLE
        assert "Camera unavailable: permission denied" in session.user_message
        assert "Allow camera access" in session.user_message
        recognizer.recognize.assert_not_called()
        assert records == []

    def test_stop_abandons_and_releases(self, controller, recognizer, records, expected_label):
        session = controller.new_session()

        def recognize(image):
            controller.stop(session.session_id)
            return OCRReading.empty()

        recognizer.recognize.side_effect = recognize
        source = StaticFrameSource([b"frame"] * 3)

        session = controller.run_auto(session, expected_label, source)

        assert session.state == CaptureState.ABANDONED
        assert recognizer.recognize.call_count == 1
        assert not source.is_open
        assert records == []

    def test_stop_before_start_is_honored(self, controller, recognizer, records, expected_label):
        session = controller.new_session()
        source = StaticFrameSource([b"frame"])
        controller.stop(session.session_id)

        session = controller.run_auto(session, expected_label, source)

        assert session.state == CaptureState.ABANDONED
        recognizer.recognize.assert_not_called()
        assert not source.is_open
        assert records == []

    def test_stop_only_affects_its_own_session(
        self, controller, recognizer, records, expected_label, matching_label_text
    ):
        other = controller.new_session(session_id="A")
        session = controller.new_session(session_id="B")

        def recognize(image):
            controller.stop(other.session_id)
            return OCRReading(matching_label_text, 0.9)

        recognizer.recognize.side_effect = recognize

        session = controller.run_auto(session, expected_label, StaticFrameSource([b"frame"]))

        assert session.state == CaptureState.SUCCESS
        assert len(records) == 1

        other = controller.run_auto(other, expected_label, StaticFrameSource([b"frame"]))
        assert other.state == CaptureState.ABANDONED
        assert len(records) == 1

    def test_concurrent_sessions_stop_independently(
        self, recognizer, expected_label, matching_label_text
    ):
        records = []
        blocked = threading.Event()
        release = threading.Event()

        def recognize(image):
            if image == b"slow":
                blocked.set()
                release.wait(5.0)
                return OCRReading.empty()
            return OCRReading(matching_label_text, 0.9)

        recognizer.recognize.side_effect = recognize
        controller = CaptureController(
            recognizer=recognizer,
            record_sink=records.append,
            config=CaptureModuleConfig(timing=TimingConfig(min_attempt_interval_s=0.0)),
        )
        slow = controller.new_session(session_id="slow")
        results = {}

        def run_slow():
            results["slow"] = controller.run_auto(
                slow, expected_label, StaticFrameSource([b"slow"] * 50)
            )

        worker = threading.Thread(target=run_slow)
        worker.start()
        try:
            assert blocked.wait(5.0)
            fast = controller.run_auto(
                controller.new_session(session_id="fast"),
                expected_label,
                StaticFrameSource([b"fast"]),
            )
            controller.stop(slow.session_id)
        finally:
            release.set()
            worker.join(5.0)

        assert fast.state == CaptureState.SUCCESS
        assert results["slow"].state == CaptureState.ABANDONED
        assert len(records) == 1

    def test_finished_session_is_returned_unchanged(
        self, controller, recognizer, expected_label, matching_label_text
    ):
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)
        session = controller.run_auto(
            controller.new_session(), expected_label, StaticFrameSource([b"frame"])
        )
        source = StaticFrameSource([b"frame"])

        again = controller.run_auto(session, expected_label, source)

        assert again is session
        assert recognizer.recognize.call_count == 1
        assert not source.is_open

    def test_timeliness_on_record(self, recognizer, records, expected_label, matching_label_text):
        scheduled = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        clock = FakeClock(datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc).timestamp())
        controller = CaptureController(
            recognizer=recognizer,
            record_sink=records.append,
            config=CaptureModuleConfig(),
            clock=clock,
            sleep=clock.sleep,
        )
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)

        session = controller.run_auto(
            controller.new_session(),
            expected_label,
            StaticFrameSource([b"frame"]),
            scheduled_at=scheduled,
        )

        assert session.state == CaptureState.SUCCESS
        assert records[0].timeliness == Timeliness.LATE
        assert records[0].timestamp == datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)


class TestRecognitionTimeout:
    """Test the hard cap on a single recognition call."""

    def test_overrunning_call_counts_as_no_text(self, records, clock, expected_label):
        release = threading.Event()

        class SlowRecognizer:
            def recognize(self, image):
                release.wait(5.0)
                return OCRReading("JOHN DOE\n9:00 AM", 0.9)

        controller = CaptureController(
            recognizer=SlowRecognizer(),
            record_sink=records.append,
            config=CaptureModuleConfig(timing=TimingConfig(recognition_timeout_s=0.05)),
            clock=clock,
            sleep=clock.sleep,
        )
        session = controller.new_session(mode=CaptureMode.MANUAL)

        try:
            session = controller.submit_frame(session, expected_label, b"frame")
        finally:
            release.set()

        assert session.state == CaptureState.RETRY_PENDING
        assert session.no_label_count == 1
        assert records == []


class TestManualMode:
    """Test caller-driven capture and manual confirmation."""

    def test_submit_frame_verifies(
        self, controller, recognizer, records, expected_label, matching_label_text
    ):
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)
        session = controller.new_session(mode=CaptureMode.MANUAL)

        session = controller.submit_frame(session, expected_label, b"frame")

        assert session.state == CaptureState.SUCCESS
        assert len(records) == 1

    def test_submit_after_success_is_ignored(
        self, controller, recognizer, records, expected_label, matching_label_text
    ):
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)
        session = controller.submit_frame(
            controller.new_session(mode=CaptureMode.MANUAL), expected_label, b"frame"
        )

        again = controller.submit_frame(session, expected_label, b"frame")

        assert again is session
        assert recognizer.recognize.call_count == 1
        assert len(records) == 1

    def test_submit_frame_resumes_after_retry(
        self, controller, recognizer, expected_label, matching_label_text
    ):
        recognizer.recognize.side_effect = [
            OCRReading(WRONG_PATIENT_TEXT, 0.9),
            OCRReading(matching_label_text, 0.9),
        ]
        session = controller.new_session(mode=CaptureMode.MANUAL)

        session = controller.submit_frame(session, expected_label, b"frame-1")
        assert session.state == CaptureState.RETRY_PENDING
        assert session.attempt_count == 1

        session = controller.submit_frame(session, expected_label, b"frame-2")
        assert session.state == CaptureState.SUCCESS

    def test_confirm_manual_emits_manual_record(
        self, controller, recognizer, records, expected_label
    ):
        recognizer.recognize.return_value = OCRReading(WRONG_PATIENT_TEXT, 0.9)
        session = controller.new_session(mode=CaptureMode.MANUAL)
        for _ in range(3):
            session = controller.submit_frame(session, expected_label, b"frame")
        assert session.state == CaptureState.MANUAL_CONFIRMATION

        session = controller.confirm_manual(session, expected_label, taken=True)

        assert session.state == CaptureState.SUCCESS
        assert len(records) == 1
        record = records[0]
        assert record.method == VerificationMethod.MANUAL
        assert record.verdict is None
        assert record.raw_text == ""

        session = controller.confirm_manual(session, expected_label, taken=True)
        assert len(records) == 1

    def test_declined_confirmation_abandons(
        self, controller, recognizer, records, expected_label
    ):
        recognizer.recognize.return_value = OCRReading.empty()
        session = controller.new_session(mode=CaptureMode.MANUAL)
        for _ in range(3):
            session = controller.submit_frame(session, expected_label, b"frame")

        session = controller.confirm_manual(session, expected_label, taken=False)

        assert session.state == CaptureState.ABANDONED
        assert records == []

    def test_abandon_releases_source(self, controller):
        source = StaticFrameSource([])
        source.open()
        session = transition(controller.new_session(), StartRequested(at=0.0)).session
        assert source.is_open

        session = controller.abandon(session, source)

        assert session.state == CaptureState.ABANDONED
        assert not source.is_open


class TestRecordSink:
    """Test the fire-and-forget success record sink."""

    def test_sink_failure_is_logged_not_raised(
        self, recognizer, clock, expected_label, matching_label_text, caplog
    ):
        sink = Mock(side_effect=IOError("database offline"))
        controller = CaptureController(
            recognizer=recognizer,
            record_sink=sink,
            config=CaptureModuleConfig(),
            clock=clock,
            sleep=clock.sleep,
        )
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)

        with caplog.at_level(logging.ERROR, logger="medscan.capture.controller"):
            session = controller.run_auto(
                controller.new_session(), expected_label, StaticFrameSource([b"frame"])
            )

        assert session.state == CaptureState.SUCCESS
        sink.assert_called_once()
        assert "database offline" in caplog.text

    def test_no_sink(self, recognizer, clock, expected_label, matching_label_text):
        controller = CaptureController(recognizer=recognizer, clock=clock, sleep=clock.sleep)
        recognizer.recognize.return_value = OCRReading(matching_label_text, 0.9)

        session = controller.run_auto(
            controller.new_session(), expected_label, StaticFrameSource([b"frame"])
        )

        assert session.state == CaptureState.SUCCESS
