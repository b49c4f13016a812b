"""
Availability service - which template slots an employee can still take on a date.

The filtering itself (`filter_available_slots`) is pure and works on local
minute offsets; `AvailabilityService` loads the timeline from the database and
converts stored UTC timestamps through the business-time module.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Employee
from ...shared.business_time import (
    MINUTES_PER_DAY,
    local_day_bounds,
    minutes_into_day,
    now_local,
    to_local,
    today_local,
)
from .repository import SchedulingRepository
from .slot_templates import Slot, slots_for_date
from .time_calculator import Interval

logger = logging.getLogger(__name__)


@dataclass
class AvailabilityResult:
    slots: list[Slot] = field(default_factory=list)
    # True when absences alone leave nothing bookable on the date
    employee_absent: bool = False


def local_interval_for_day(starts_at: datetime, ends_at: datetime, day: date) -> Optional[Interval]:
    """
    Project an absolute [starts_at, ends_at) onto the local day as minutes.

    A multi-day range is clipped to [00:00, 24:00): on its first day only the
    part from its start time blocks, on its last day only the part before its
    end time, and any day in between is covered entirely.
    Partial minutes widen the interval so it never blocks less than the
    stored range.
    """
    start = minutes_into_day(starts_at, day)
    end = minutes_into_day(ends_at, day, round_up=True)
    if not start < end:
        return None
    return Interval(start, end).clip(0, MINUTES_PER_DAY)


def _is_free(candidate: Interval, busy: Iterable[Interval]) -> bool:
    return not any(candidate.overlaps(interval) for interval in busy)


def filter_available_slots(
    slots: list[Slot],
    appointment_intervals: list[Interval],
    absence_intervals: list[Interval],
    required_minutes: Optional[int] = None,
) -> AvailabilityResult:
    """
    Keep the slots that overlap neither an appointment nor an absence.

    With `required_minutes`, a slot also needs [start, start + required_minutes)
    to be free, so that the whole booking fits from that slot.
    """
    blocked = list(appointment_intervals) + list(absence_intervals)

    available = []
    for slot in slots:
        end = slot.end_minutes
        if required_minutes:
            end = max(end, slot.start_minutes + required_minutes)
        candidate = Interval(slot.start_minutes, end)
        if _is_free(candidate, blocked):
            available.append(slot)

    employee_absent = False
    if absence_intervals and not available:
        employee_absent = not any(
            _is_free(Interval(slot.start_minutes, slot.end_minutes), absence_intervals)
            for slot in slots
        )

    return AvailabilityResult(slots=available, employee_absent=employee_absent)


class AvailabilityService:
    """Service layer for slot availability"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def required_minutes_for(self, service_ids: list[int]) -> int:
        """Total catalog duration of the given services (each id counted once per mention)"""
        catalog = self.repo.get_active_services_by_ids(self.db, service_ids)
        missing = sorted(set(service_ids) - set(catalog))
        if missing:
            raise NotFoundError(f"Servicios no encontrados: {missing}", reason="service_not_found")
        return sum(catalog[service_id].duracion_minutos for service_id in service_ids)

    def get_available_slots(
        self,
        employee_id: int,
        day: date,
        service_ids: Optional[list[int]] = None,
        now: Optional[datetime] = None,
    ) -> AvailabilityResult:
        employee = self.repo.get_active_employee(self.db, employee_id)
        if not employee:
            raise NotFoundError("Empleado no encontrado", reason="employee_not_found")

        required_minutes = self.required_minutes_for(service_ids) if service_ids else None

        today = to_local(now).date() if now else today_local()
        if day < today:
            logger.info(f"📅 Availability requested for past date {day} (employee {employee_id})")
            return AvailabilityResult()

        day_start, day_end = local_day_bounds(day)
        appointments = self.repo.blocking_appointments_between(
            self.db, employee_id, day_start, day_end
        )
        absences = self.repo.blocking_absences_between(self.db, employee_id, day_start, day_end)

        appointment_intervals = [
            interval
            for interval in (local_interval_for_day(a.starts_at, a.ends_at, day) for a in appointments)
            if interval
        ]
        absence_intervals = [
            interval
            for interval in (local_interval_for_day(a.starts_at, a.ends_at, day) for a in absences)
            if interval
        ]

        result = filter_available_slots(
            slots_for_date(day), appointment_intervals, absence_intervals, required_minutes
        )

        if day == today:
            # Slots already started are no longer bookable
            elapsed = minutes_into_day(now or now_local(), day)
            result.slots = [slot for slot in result.slots if slot.start_minutes > elapsed]

        logger.debug(
            f"🔍 Employee {employee_id} on {day}: {len(result.slots)} free slots, "
            f"{len(appointments)} appointments, {len(absences)} absences"
        )
        return result

    def list_bookable_employees(
        self,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> list[Employee]:
        """Active employees, minus those busy or absent in the window when one is given"""
        return self.repo.list_bookable_employees(self.db, window_start, window_end)

    def list_services(self):
        return self.repo.list_active_services(self.db)
