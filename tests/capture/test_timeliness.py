"""Unit tests for dose timeliness classification."""

from datetime import datetime, timedelta, timezone

import pytest

from medscan.capture.config_loader import TimelinessConfig
from medscan.capture.timeliness import classify_timeliness
from medscan.capture.types import Timeliness

SCHEDULED = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "delay_minutes,expected",
    [
        (-30, Timeliness.ON_TIME),
        (0, Timeliness.ON_TIME),
        (60, Timeliness.ON_TIME),
        (61, Timeliness.LATE),
        (120, Timeliness.LATE),
        (121, Timeliness.MISSED),
    ],
)
def test_default_windows(delay_minutes, expected):
    taken = SCHEDULED + timedelta(minutes=delay_minutes)
    assert classify_timeliness(SCHEDULED, taken) == expected


def test_custom_windows():
    config = TimelinessConfig(on_time_minutes=15, late_minutes=30)
    taken = SCHEDULED + timedelta(minutes=20)
    assert classify_timeliness(SCHEDULED, taken, config) == Timeliness.LATE


def test_naive_datetimes_are_utc():
    scheduled = datetime(2024, 5, 1, 9, 0)
    taken = datetime(2024, 5, 1, 9, 45, tzinfo=timezone.utc)
    assert classify_timeliness(scheduled, taken) == Timeliness.ON_TIME


def test_timezone_offsets_are_respected():
    taken = datetime(2024, 5, 1, 11, 30, tzinfo=timezone(timedelta(hours=2)))
    assert classify_timeliness(SCHEDULED, taken) == Timeliness.ON_TIME
