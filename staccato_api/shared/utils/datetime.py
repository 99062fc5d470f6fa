"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system should be timezone-aware UTC.
Use these helpers instead of datetime.now() or datetime.utcnow().
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Return the current UTC datetime with timezone info.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(UTC)


def to_epoch_seconds(dt: datetime) -> int:
    """
    Return whole seconds since the Unix epoch for a datetime.

    Naive datetimes are treated as UTC. Used for JWT iat/exp claims.

    Args:
        dt: Datetime to convert

    Returns:
        Integer Unix timestamp
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp())
