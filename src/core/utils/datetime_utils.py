from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def get_utc_now() -> datetime:
    """
    Get the current date and time in UTC.

    This function returns the current time with timezone information set to UTC,
    ensuring that the returned datetime object is offset-aware.

    Returns:
        datetime: The current date and time in UTC with tzinfo set to ZoneInfo("UTC").
    """
    return datetime.now(ZoneInfo("UTC"))


def to_epoch_seconds(value: datetime) -> int:
    """
    Convert a datetime to whole POSIX seconds. Naive values are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_epoch_seconds(value: int | float) -> datetime:
    """Inverse of :func:`to_epoch_seconds`; always returns an aware UTC datetime."""
    return datetime.fromtimestamp(int(value), tz=ZoneInfo("UTC"))


def truncate_to_seconds(value: datetime) -> datetime:
    return value.replace(microsecond=0)
