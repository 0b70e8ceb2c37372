"""
DateTime utilities for slot times and experience dates.
All "today" calculations happen in the restaurant timezone.
"""
from datetime import datetime, timedelta, date, time
from typing import Optional
import re

import pytz

from core.config import settings


# Timezone configuration
TIMEZONE = pytz.timezone(settings.timezone)

# "7:00 PM", "12:30 am"
SLOT_TIME_PATTERN = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$')


def get_current_datetime() -> datetime:
    """Get current datetime in the restaurant timezone."""
    return datetime.now(TIMEZONE)


def get_current_date() -> date:
    """Get today's date in the restaurant timezone."""
    return get_current_datetime().date()


def resolve_day_offset(day_offset: int, reference: Optional[date] = None) -> date:
    """
    Turn a relative day offset into a calendar date.

    Args:
        day_offset: Days after the reference date
        reference: Reference date, defaults to today in the restaurant timezone

    Returns:
        The resolved date
    """
    if reference is None:
        reference = get_current_date()
    return reference + timedelta(days=day_offset)


def parse_slot_time(text: str) -> Optional[time]:
    """
    Parse a 12-hour slot label such as "7:30 PM" into a time object.

    Args:
        text: Slot label

    Returns:
        time object or None if parsing fails
    """
    if not text:
        return None

    match = SLOT_TIME_PATTERN.match(text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(3).upper()

    if hour < 1 or hour > 12:
        return None

    # 12 AM is midnight, 12 PM is noon
    hour = hour % 12
    if meridiem == 'PM':
        hour += 12

    try:
        return time(hour, minute)
    except ValueError:
        return None


def format_slot_time(value: time) -> str:
    """
    Format a time object as a 12-hour slot label.

    Args:
        value: time object

    Returns:
        Label like "7:00 PM"
    """
    meridiem = 'PM' if value.hour >= 12 else 'AM'
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {meridiem}"


def is_past_date(value: date) -> bool:
    """Check whether a date is before today in the restaurant timezone."""
    return value < get_current_date()
