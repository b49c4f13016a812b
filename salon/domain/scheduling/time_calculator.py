"""
Time parsing and interval arithmetic.

All overlap tests in the application use `overlaps`, with half-open
intervals: [start, end). Intervals that only touch at an endpoint do not
overlap.
"""

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import and_

from ...shared.validators import validate_time_of_day


def to_minutes(hhmm: str) -> int:
    """Convert 'HH:MM' (or 'HH:MM:SS') to minutes since midnight"""
    normalized = validate_time_of_day(hhmm)
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)


def from_minutes(total: int) -> str:
    """Convert minutes since midnight back to 'HH:MM'"""
    if total < 0 or total > 24 * 60:
        raise ValueError(f"Minute offset out of range: {total}")
    return f"{total // 60:02d}:{total % 60:02d}"


def overlaps(a_start: Any, a_end: Any, b_start: Any, b_end: Any) -> bool:
    """Canonical overlap rule for [a_start, a_end) and [b_start, b_end)"""
    return a_start < b_end and a_end > b_start


def sql_overlaps(start_column, end_column, start, end):
    """The same rule as `overlaps`, as a SQL predicate over two columns"""
    return and_(start_column < end, end_column > start)


@dataclass(frozen=True)
class Interval:
    """A half-open [start, end) interval of comparable values (minutes or datetimes)"""

    start: Any
    end: Any

    def __post_init__(self):
        if not self.start < self.end:
            raise ValueError(f"Interval start must be before end: {self.start} >= {self.end}")

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def clip(self, lower: Any, upper: Any) -> Optional["Interval"]:
        """Intersect with [lower, upper); None when nothing remains"""
        start = max(self.start, lower)
        end = min(self.end, upper)
        if start < end:
            return Interval(start, end)
        return None
