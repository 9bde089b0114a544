"""Datetime utilities for consistent timezone handling across the application."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time, standardized across the application.

    Returns:
        Current datetime in UTC timezone.
    """
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    """Get current UTC time as naive datetime for database operations.

    Returns:
        Current datetime in UTC as naive datetime (no timezone info).

    Note:
        Columns are TIMESTAMP WITHOUT TIME ZONE and always hold UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware or naive datetime to naive UTC.

    Naive input is assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_unix_timestamp(timestamp: int) -> datetime:
    """Convert a provider unix timestamp (seconds) to naive UTC."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)
