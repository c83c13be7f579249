"""
Standardized Date/Time Handling Utilities

All engine timestamps are timezone-aware UTC. Time windows for achievement
criteria are resolved against UTC calendar boundaries:

- daily:    00:00 UTC today
- weekly:   00:00 UTC on the most recent Sunday (weeks begin on Sunday)
- monthly:  00:00 UTC on the 1st of the current month
- all-time: ALL_TIME_START

Never mix naive and aware datetimes; use ensure_utc() on anything that
crosses a boundary (API input, database rows).
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)

ALL_TIME_START = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is in UTC

    Args:
        dt: Datetime (can be None, naive, or aware)

    Returns:
        Datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Assume UTC for naive datetimes
        logger.debug(f"Received naive datetime, assuming UTC: {dt}")
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def start_of_day(dt: datetime) -> datetime:
    """Midnight UTC of the day containing dt"""
    dt = ensure_utc(dt)
    return datetime.combine(dt.date(), time.min, tzinfo=timezone.utc)


def start_of_week(dt: datetime) -> datetime:
    """
    Midnight UTC of the Sunday on or before dt

    Python's weekday() is Monday=0..Sunday=6, so the distance back to
    Sunday is (weekday + 1) % 7.
    """
    day_start = start_of_day(dt)
    return day_start - timedelta(days=(day_start.weekday() + 1) % 7)


def start_of_month(dt: datetime) -> datetime:
    """Midnight UTC on the first day of dt's month"""
    return start_of_day(dt).replace(day=1)


def seconds_until(target_dt: datetime, from_dt: Optional[datetime] = None) -> int:
    """
    Calculate seconds until a target datetime

    Args:
        target_dt: Target datetime (assumed UTC if naive)
        from_dt: Reference datetime (defaults to now)

    Returns:
        Number of seconds until target (can be negative if in past)
    """
    now = ensure_utc(from_dt) if from_dt else now_utc()
    delta = ensure_utc(target_dt) - now
    return int(delta.total_seconds())
