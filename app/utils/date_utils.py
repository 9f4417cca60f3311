"""Date formatting and local-clock utilities."""
from datetime import date, datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

import config


def format_date_us(d: date) -> str:
    """Format date in US short form: '6/13/2025'."""
    if d is None:
        return "N/A"
    return f"{d.month}/{d.day}/{d.year}"


def get_local_timezone() -> Optional[tzinfo]:
    """Configured reminder timezone, or None for host local time."""
    if not config.REMINDER_TIMEZONE:
        return None
    return ZoneInfo(config.REMINDER_TIMEZONE)


def now_local() -> datetime:
    """Current wall-clock time in the reminder timezone."""
    tz = get_local_timezone()
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)
