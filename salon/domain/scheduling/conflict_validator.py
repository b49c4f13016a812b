"""Conflict validator - Read-only check of a proposed [starts_at, ends_at) against persisted state"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ConflictError
from .repository import SchedulingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictCheck:
    ok: bool
    reason: Optional[str] = None
    conflicting_id: Optional[int] = None


class ConflictValidator:
    """
    Checks a proposed interval for an employee against blocking appointments
    and approved blocking absences, using absolute timestamps.

    Must run inside the same transaction as the insert it guards, after the
    employee lock has been taken.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def check(
        self,
        employee_id: int,
        starts_at: datetime,
        ends_at: datetime,
    ) -> ConflictCheck:
        appointments = self.repo.blocking_appointments_between(
            self.db, employee_id, starts_at, ends_at
        )
        if appointments:
            return ConflictCheck(False, ConflictError.APPOINTMENT_OVERLAP, appointments[0].id)

        absences = self.repo.blocking_absences_between(self.db, employee_id, starts_at, ends_at)
        if absences:
            return ConflictCheck(False, ConflictError.EMPLOYEE_ABSENT, absences[0].id)

        return ConflictCheck(True)

    def ensure_available(
        self,
        employee_id: int,
        starts_at: datetime,
        ends_at: datetime,
    ) -> None:
        result = self.check(employee_id, starts_at, ends_at)
        if result.ok:
            return

        logger.warning(
            f"⚠️ Conflict for employee {employee_id} at {starts_at.isoformat()}: "
            f"{result.reason} (id {result.conflicting_id})"
        )
        if result.reason == ConflictError.EMPLOYEE_ABSENT:
            raise ConflictError(
                "El empleado no está disponible en el horario seleccionado",
                reason=result.reason,
            )
        raise ConflictError(
            "El horario seleccionado ya no está disponible",
            reason=result.reason,
        )
