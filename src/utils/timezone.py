"""
Timezone helpers.

Route dates are local calendar dates of the operating market, so "today" must
be computed in the configured zone (US Eastern by default), never the server's.
"""
from datetime import date, datetime, timezone as tz
from zoneinfo import ZoneInfo

from src.config import settings

TIMEZONE = ZoneInfo(settings.TIMEZONE)

def now() -> datetime:
    """Current time in the operating timezone"""
    return datetime.now(TIMEZONE)

def utcnow() -> datetime:
    return datetime.now(tz.utc)

def today() -> date:
    """Current calendar date in the operating timezone"""
    return now().date()

def to_local(dt: datetime) -> datetime:
    """
    Convert a datetime to the operating timezone.

    Naive datetimes are treated as UTC, which is what the database returns
    for server-side timestamps.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz.utc)
    return dt.astimezone(TIMEZONE)
