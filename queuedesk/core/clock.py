"""
Business calendar helpers

Timestamps are stored as naive UTC. "Today" is the calendar day in the
restaurant's own timezone, not the server's.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from queuedesk.core.config import get_settings

settings = get_settings()


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


def to_business_time(value: datetime) -> datetime:
    """Convert a naive UTC timestamp to local business time"""
    return value.replace(tzinfo=timezone.utc).astimezone(business_tz())


def business_day_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return the current business day as a naive UTC [start, end) range"""
    now = now or datetime.utcnow()
    local_now = to_business_time(now)
    local_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    local_end = local_start + timedelta(days=1)
    return (
        local_start.astimezone(timezone.utc).replace(tzinfo=None),
        local_end.astimezone(timezone.utc).replace(tzinfo=None),
    )


def is_same_business_day(value: datetime, now: Optional[datetime] = None) -> bool:
    start, end = business_day_bounds(now)
    return start <= value < end
