"""Datetime utilities for common operations."""

from datetime import datetime, date, timedelta, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``dt`` as an aware UTC datetime.

    Some drivers (sqlite) hand back naive values for timezone-aware columns;
    those are stored in UTC, so they are tagged rather than converted.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def days_ago(days: int) -> datetime:
    """Get the UTC instant ``days`` days before now."""
    return now() - timedelta(days=days)


def start_of_day(dt: datetime | date) -> datetime:
    """
    Get start of day (00:00:00 UTC).

    Args:
        dt: Date or datetime

    Returns:
        Datetime at start of day
    """
    if isinstance(dt, datetime):
        dt = dt.date()
    return datetime.combine(dt, datetime.min.time()).replace(tzinfo=timezone.utc)


def is_past(dt: datetime | date) -> bool:
    """
    Check if datetime or date is in the past.

    Naive datetimes are treated as UTC.
    """
    if isinstance(dt, datetime):
        return as_utc(dt) < now()
    return dt < now().date()


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to ISO-8601 in UTC, passing ``None`` through."""
    return as_utc(dt).isoformat() if dt else None


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 string, date or datetime into an aware UTC datetime.

    Returns ``None`` for empty or unparseable values.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return start_of_day(value)
    try:
        return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None
