"""Dose timeliness relative to the scheduled administration time.

Timeliness is reported on the success record only. It never decides whether
a label is valid; a late scan of the right label still verifies.
"""

from datetime import datetime, timezone
from typing import Optional

from .config_loader import TimelinessConfig
from .types import Timeliness


def classify_timeliness(
    scheduled_at: datetime,
    taken_at: datetime,
    config: Optional[TimelinessConfig] = None,
) -> Timeliness:
    """Classify a verification time against its schedule.

    Early verifications count as on time. Naive datetimes are taken as UTC.

    Args:
        scheduled_at: Scheduled administration time
        taken_at: Time the dose was verified
        config: Timeliness windows (defaults: 60 / 120 minutes)

    Returns:
        ON_TIME within ``on_time_minutes`` after schedule, LATE within
        ``late_minutes``, MISSED beyond that

    Example:
        >>> scheduled = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        >>> classify_timeliness(scheduled, scheduled.replace(hour=10, minute=30))
        <Timeliness.LATE: 'late'>
    """
    config = config or TimelinessConfig()
    delay_minutes = (_as_utc(taken_at) - _as_utc(scheduled_at)).total_seconds() / 60.0

    if delay_minutes <= config.on_time_minutes:
        return Timeliness.ON_TIME
    if delay_minutes <= config.late_minutes:
        return Timeliness.LATE
    return Timeliness.MISSED


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
