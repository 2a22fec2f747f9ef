"""
Timezone utilities for the club.

All calendar decisions (what "today" is, whether a session has ended)
are made in the club's local timezone, not the server's.
"""

from datetime import date, datetime, time
from typing import Optional

import pytz

from .config import settings


def get_club_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """Return the configured club timezone as a pytz timezone object."""
    return pytz.timezone(tz_name or settings.club_timezone)


def get_club_now(tz_name: Optional[str] = None) -> datetime:
    """Current aware datetime in the club timezone."""
    return datetime.now(get_club_timezone(tz_name))


def get_club_today(tz_name: Optional[str] = None) -> date:
    """'Today' as seen on the club's wall clock."""
    return get_club_now(tz_name).date()


def club_datetime(target_date: date, hour: int, tz_name: Optional[str] = None) -> datetime:
    """Aware datetime for the start of ``hour`` on a club calendar day."""
    return get_club_timezone(tz_name).localize(datetime.combine(target_date, time(hour, 0)))


def to_club_time(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert an aware datetime (or naive UTC) into club local time."""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(get_club_timezone(tz_name))
