"""Time utilities for the daily and monthly credit windows.

All window arithmetic happens in UTC. Values read back from databases that
drop tzinfo (SQLite, MySQL ``DATETIME``) are treated as UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC time with tzinfo."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_window_start(now: datetime) -> datetime:
    """Midnight of the day containing ``now``."""

    return as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


def month_window_start(now: datetime) -> datetime:
    """Midnight of the first day of the month containing ``now``."""

    return day_window_start(now).replace(day=1)


__all__ = ["as_utc", "day_window_start", "month_window_start", "utc_now"]
