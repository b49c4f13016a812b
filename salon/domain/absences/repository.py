"""Absence repository - Database operations for employee absences"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ...models import Absence, Appointment, Employee, RELEASED_STATUSES
from ..scheduling.time_calculator import sql_overlaps


class AbsenceRepository:
    """Repository for absence data access"""

    @staticmethod
    def get_by_id(db: Session, absence_id: int) -> Optional[Absence]:
        return (
            db.query(Absence)
            .options(joinedload(Absence.employee).joinedload(Employee.user))
            .filter(Absence.id == absence_id)
            .first()
        )

    @staticmethod
    def get_employee(db: Session, employee_id: int) -> Optional[Employee]:
        return db.query(Employee).filter(Employee.id == employee_id).first()

    @staticmethod
    def get_employee_by_user_id(db: Session, user_id: int) -> Optional[Employee]:
        return db.query(Employee).filter(Employee.usuario_id == user_id).first()

    @staticmethod
    def create(db: Session, **kwargs) -> Absence:
        absence = Absence(**kwargs)
        db.add(absence)
        db.commit()
        db.refresh(absence)
        return absence

    @staticmethod
    def build_list_query(
        db: Session,
        employee_id: Optional[int] = None,
        reason: Optional[str] = None,
        status: Optional[str] = None,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> Query:
        query = db.query(Absence).options(joinedload(Absence.employee).joinedload(Employee.user))
        if employee_id is not None:
            query = query.filter(Absence.empleado_id == employee_id)
        if reason is not None:
            query = query.filter(Absence.motivo == reason)
        if status is not None:
            query = query.filter(Absence.status == status)
        if window_start is not None:
            query = query.filter(Absence.ends_at > window_start)
        if window_end is not None:
            query = query.filter(Absence.starts_at < window_end)
        return query

    @staticmethod
    def count_blocking_appointments(
        db: Session, employee_id: int, starts_at: datetime, ends_at: datetime
    ) -> int:
        """Appointments already booked inside an absence range"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.empleado_id == employee_id,
                Appointment.status.notin_(RELEASED_STATUSES),
                sql_overlaps(Appointment.starts_at, Appointment.ends_at, starts_at, ends_at),
            )
            .count()
        )
