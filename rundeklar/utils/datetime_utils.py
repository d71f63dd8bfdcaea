"""
Datetime utility functions.
Provides timezone-aware "now" and the club season calendar.
"""

import os
from datetime import datetime
from typing import Optional
import pytz

# Seasons roll over in the club's local time, not UTC
CLUB_TIMEZONE = os.getenv("CLUB_TIMEZONE", "Europe/Copenhagen")

# First month of a season (August)
SEASON_START_MONTH = 8


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes (SQLite returns them naive) and convert
    aware ones to UTC.
    """
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def to_club_time(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert a datetime to the club's local timezone."""
    tz = pytz.timezone(tz_name or CLUB_TIMEZONE)
    return ensure_utc(value).astimezone(tz)


def season_for_date(value: datetime, tz_name: Optional[str] = None) -> str:
    """
    Season label for a session date.

    August through December belong to the season starting that year;
    January through July belong to the season that started the year before.

    Examples:
        >>> season_for_date(datetime(2025, 8, 1, 12, tzinfo=pytz.UTC))
        "2025-2026"
        >>> season_for_date(datetime(2026, 7, 31, 12, tzinfo=pytz.UTC))
        "2025-2026"
    """
    local = to_club_time(value, tz_name)
    start_year = local.year if local.month >= SEASON_START_MONTH else local.year - 1
    return f"{start_year}-{start_year + 1}"


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC, or None."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()
