"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

_TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


def validate_time_of_day(value: Optional[str]) -> Optional[str]:
    """
    Validate a wall-clock time and normalize it to HH:MM.

    Args:
        value: Time string in HH:MM or HH:MM:SS format

    Returns:
        Normalized HH:MM string

    Raises:
        ValueError: If the time format is invalid
    """
    if value is None:
        return value

    value = value.strip()
    match = _TIME_OF_DAY_RE.match(value)
    if not match:
        raise ValueError("Time must use the HH:MM format")

    return f"{match.group(1)}:{match.group(2)}"


def validate_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a calendar date in YYYY-MM-DD format.

    Raises:
        ValueError: If the date is malformed or does not exist
    """
    if value is None:
        return value
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError("Date must use the YYYY-MM-DD format") from None


def parse_id_list(value: Optional[str]) -> list[int]:
    """
    Parse a comma separated list of positive integer ids ("1,2,3").

    Raises:
        ValueError: If any element is not a positive integer
    """
    if not value:
        return []

    ids = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or int(part) < 1:
            raise ValueError(f"Invalid id: {part!r}")
        ids.append(int(part))
    return ids
