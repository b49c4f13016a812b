"""
Business timezone boundary.

Every conversion between the salon's local wall-clock time and UTC goes
through this module. The business runs on a single fixed UTC offset with no
daylight saving time; changing that assumption means changing this file only.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from ..config import BUSINESS_TIMEZONE_NAME, BUSINESS_UTC_OFFSET

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")


def parse_utc_offset(value: str) -> timezone:
    """Parse an offset like '-05:00' into a fixed timezone"""
    match = _OFFSET_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid UTC offset: {value!r} (expected ±HH:MM)")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    if sign == "-":
        delta = -delta
    return timezone(delta, BUSINESS_TIMEZONE_NAME)


BUSINESS_TZ = parse_utc_offset(BUSINESS_UTC_OFFSET)

MINUTES_PER_DAY = 24 * 60


def to_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC. Naive values are rejected."""
    if value.tzinfo is None:
        raise ValueError("Naive datetimes are ambiguous; attach a timezone first")
    return value.astimezone(timezone.utc)


def to_local(value: datetime) -> datetime:
    """Convert an aware datetime (usually UTC from storage) to business time"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(BUSINESS_TZ)


def local_datetime(day: date, wall_clock: time) -> datetime:
    """Bind a local wall-clock time to a date in the business timezone"""
    return datetime.combine(day, wall_clock, tzinfo=BUSINESS_TZ)


def localize(value: datetime) -> datetime:
    """Treat a naive datetime as business wall-clock time; aware values pass through"""
    if value.tzinfo is None:
        return value.replace(tzinfo=BUSINESS_TZ)
    return value


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """Return the [start, end) of a local calendar day as UTC datetimes"""
    start = local_datetime(day, time(0, 0))
    return to_utc(start), to_utc(start + timedelta(days=1))


def minutes_into_day(value: datetime, day: date, round_up: bool = False) -> int:
    """
    Minutes between local midnight of `day` and `value`.

    The result is not clamped: instants before the day are negative and
    instants after it exceed 24*60, so callers can clip intervals uniformly.
    Partial minutes are dropped unless `round_up` is set.
    """
    midnight = local_datetime(day, time(0, 0))
    seconds = (to_local(value) - midnight).total_seconds()
    if round_up:
        return int(-(-seconds // 60))
    return int(seconds // 60)


def now_local() -> datetime:
    return datetime.now(timezone.utc).astimezone(BUSINESS_TZ)


def today_local() -> date:
    return now_local().date()


def format_local(value: Optional[datetime], fmt: str = "%Y-%m-%dT%H:%M:%S") -> Optional[str]:
    if value is None:
        return None
    return to_local(value).strftime(fmt)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp column.

    Values are stored as naive UTC (portable across SQLite and PostgreSQL)
    and always come back as aware UTC datetimes.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
