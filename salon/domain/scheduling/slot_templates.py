"""
Bookable slot catalog.

Slots are fixed per weekday and not configurable at runtime. Sunday has a
shortened morning template; every other day uses the full-day template with a
lunch gap between 12:45 and 14:15.
"""

from dataclasses import dataclass
from datetime import date

from .time_calculator import from_minutes, to_minutes

SLOT_MINUTES = 30
SUNDAY = 6  # date.weekday()


@dataclass(frozen=True)
class Slot:
    inicio: str  # HH:MM
    fin: str  # HH:MM

    @property
    def start_minutes(self) -> int:
        return to_minutes(self.inicio)

    @property
    def end_minutes(self) -> int:
        return to_minutes(self.fin)

    def to_dict(self) -> dict[str, str]:
        return {"inicio": self.inicio, "fin": self.fin}


def _block(first_start: str, count: int, minutes: int = SLOT_MINUTES) -> tuple[Slot, ...]:
    """Contiguous run of `count` slots beginning at `first_start`"""
    start = to_minutes(first_start)
    return tuple(
        Slot(from_minutes(start + i * minutes), from_minutes(start + (i + 1) * minutes))
        for i in range(count)
    )


SHORT_DAY_TEMPLATE = _block("09:30", 9)  # 09:30 - 14:00
FULL_DAY_TEMPLATE = _block("09:15", 7) + _block("14:15", 9)  # 09:15 - 12:45, 14:15 - 18:45

TEMPLATES_BY_WEEKDAY = {
    weekday: SHORT_DAY_TEMPLATE if weekday == SUNDAY else FULL_DAY_TEMPLATE
    for weekday in range(7)
}


def slots_for_date(day: date) -> list[Slot]:
    """Ordered candidate slots for a calendar date"""
    return list(TEMPLATES_BY_WEEKDAY[day.weekday()])


def is_template_start(day: date, inicio: str) -> bool:
    """Whether `inicio` is the start of one of the day's slots"""
    target = to_minutes(inicio)
    return any(slot.start_minutes == target for slot in TEMPLATES_BY_WEEKDAY[day.weekday()])
