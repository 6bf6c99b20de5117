"""
Datetime utilities for consistent timezone handling across the application.

All scheduling math runs on timezone-aware instants. Wall-clock values such
as working hours ("09:00") are interpreted in the clinic timezone configured
by CLINIC_TIMEZONE.
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import CLINIC_TIMEZONE

logger = logging.getLogger(__name__)

CLINIC_TZ = ZoneInfo(CLINIC_TIMEZONE)


def clinic_now() -> datetime:
    """
    Get the current datetime in the clinic timezone.

    Returns:
        Current timezone-aware datetime
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the clinic timezone.

    Naive values are assumed to already be clinic wall-clock time.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=CLINIC_TZ)
    return dt.astimezone(CLINIC_TZ)


def parse_time_string(value: str) -> time:
    """
    Parse a wall-clock time in HH:MM format.

    Raises:
        ValueError: If the string is not a valid HH:MM time
    """
    try:
        return datetime.strptime(value.strip(), "%H:%M").time()
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid time format (expected HH:MM): {value}") from e


def combine_clinic(day: date, wall_time: time) -> datetime:
    """Build the clinic-timezone instant for a wall-clock time on a day."""
    return datetime.combine(day, wall_time, tzinfo=CLINIC_TZ)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the [start, end) instants covering a calendar day."""
    start = combine_clinic(day, time(0, 0))
    return start, combine_clinic(day + timedelta(days=1), time(0, 0))


def sunday_based_weekday(day: date) -> int:
    """
    Weekday index with 0=Sunday ... 6=Saturday.

    Working-day settings use this convention; Python's weekday() starts on Monday.
    """
    return day.isoweekday() % 7


def parse_datetime_to_clinic(value: str | datetime) -> datetime:
    """
    Parse an ISO datetime string (or pass through a datetime) into the clinic timezone.

    Handles a trailing Z for UTC. Naive values are taken as clinic wall-clock time.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        result = ensure_clinic_tz(value)
        assert result is not None
        return result

    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string format: {value}") from e

    result = ensure_clinic_tz(dt)
    assert result is not None
    return result


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    year = parts[0].zfill(4)
    month = parts[1].zfill(2)
    day = parts[2].zfill(2)

    normalized = f"{year}-{month}-{day}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e
