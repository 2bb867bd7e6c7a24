"""
Datetime utilities for consistent timezone handling across the application.

This module provides utilities to ensure all datetime operations use timezone-aware
datetimes consistently. All times are in the clinic's local timezone for business logic.
"""

import calendar
import logging
from datetime import datetime, timezone, timedelta, date
from typing import Optional

from core.config import CLINIC_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)

# Clinic timezone constant (fixed UTC offset, e.g. UTC+7)
CLINIC_TZ = timezone(timedelta(hours=CLINIC_UTC_OFFSET_HOURS))


def clinic_now() -> datetime:
    """
    Get current clinic-local datetime.

    All transition timestamps recorded by the appointment lifecycle use this.

    Returns:
        Current datetime with clinic timezone
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware with clinic timezone.

    Args:
        dt: Datetime to ensure is clinic timezone-aware

    Returns:
        Timezone-aware datetime in clinic timezone, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # If naive, assume it's already in clinic time and localize it
        return dt.replace(tzinfo=CLINIC_TZ)
    else:
        # If already timezone-aware, convert to clinic timezone
        return dt.astimezone(CLINIC_TZ)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2022-01-01", "2022-1-1")
    - YYYY/MM/DD (e.g., "2022/01/01", "2022/1/1")

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

    # Normalize separators and pad single-digit months/days
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


def add_months(anchor: date, months: int) -> date:
    """
    Shift a date by whole calendar months, keeping the day-of-month.

    When the target month is shorter than ``anchor.day`` the result is clamped
    to the last day of that month (Jan 31 + 1 month -> Feb 28/29).

    Args:
        anchor: Starting date
        months: Number of months to add (may be negative)

    Returns:
        Shifted date
    """
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor.day, last_day))


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """
    Get the first and last date of a calendar month.

    Raises:
        ValueError: If month is not in 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
