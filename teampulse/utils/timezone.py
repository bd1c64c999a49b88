"""Timezone utilities for consistent UTC handling across the pipeline."""

from datetime import datetime, timedelta
from typing import Optional
import pytz


UTC = pytz.UTC


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to timezone-aware UTC.

    SQLite returns naive datetimes for DateTime(timezone=True) columns, so
    every value read back from the store goes through here.

    Args:
        dt: Datetime to normalize (can be naive or timezone-aware)

    Returns:
        Datetime in UTC, or None
    """
    if dt is None:
        return None

    # If naive, assume UTC
    if dt.tzinfo is None:
        return UTC.localize(dt)

    return dt.astimezone(UTC)


def utc_now() -> datetime:
    """Get current time in UTC."""
    return datetime.now(UTC)


def from_epoch_millis(value) -> Optional[datetime]:
    """Convert epoch milliseconds to a UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(float(value) / 1000.0, tz=UTC)


def from_epoch_seconds(value) -> Optional[datetime]:
    """Convert epoch seconds (int, float or Slack-style string) to UTC."""
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(float(value), tz=UTC)


def to_epoch_millis(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp() * 1000)


def to_epoch_seconds(dt: datetime) -> float:
    return ensure_utc(dt).timestamp()


def utc_day_key(dt: datetime) -> str:
    """
    Calendar day of a datetime in UTC.

    Returns:
        String like "2025-01-15"
    """
    return ensure_utc(dt).strftime("%Y-%m-%d")


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) - timedelta(days=days)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC for JSON output."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
