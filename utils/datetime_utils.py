"""
Datetime utilities for consistent timezone handling across the application.
All wall-clock decisions are made in the salon's configured timezone,
never in the host machine's timezone.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Union
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def get_zone(tz: Union[str, ZoneInfo]) -> ZoneInfo:
    """Resolve a timezone identifier such as 'Europe/Rome'."""
    if isinstance(tz, ZoneInfo):
        return tz
    return ZoneInfo(tz)


def to_local(dt: datetime, tz: Union[str, ZoneInfo]) -> datetime:
    """
    Convert an aware datetime to the given timezone.
    Naive datetimes are treated as UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(get_zone(tz))


def local_today(now: datetime, tz: Union[str, ZoneInfo]) -> date:
    """Calendar day in the given timezone at instant `now`."""
    return to_local(now, tz).date()


def day_of_week(day: date) -> int:
    """Weekday index with 0 = Sunday, 6 = Saturday (the salon database convention)."""
    return (day.weekday() + 1) % 7


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    # Normalize 'Z' suffix to '+00:00'
    normalized = iso_string.replace("Z", "+00:00")

    try:
        dt = datetime.fromisoformat(normalized)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.
    Ensures timezone-aware datetimes are properly formatted.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.isoformat()


def format_hhmm(value: time) -> str:
    """Format a time of day as HH:MM."""
    return value.strftime("%H:%M")


def add_minutes(value: time, minutes: int) -> time:
    """
    Add minutes to a time of day.

    Raises:
        ValueError: If the result would cross midnight
    """
    start = datetime.combine(date.min, value)
    end = start + timedelta(minutes=minutes)
    if end.date() != start.date():
        raise ValueError(f"{format_hhmm(value)} + {minutes} min crosses midnight")
    return end.time()
