"""Appointment repository - Database operations for staff-side appointment management"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ...models import Appointment, AppointmentService, Client, Employee


class AppointmentRepository:
    """Repository for appointment data access"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.client).joinedload(Client.user),
                joinedload(Appointment.employee).joinedload(Employee.user),
                selectinload(Appointment.services).joinedload(AppointmentService.service),
            )
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_employee_by_user_id(db: Session, user_id: int) -> Optional[Employee]:
        return db.query(Employee).filter(Employee.usuario_id == user_id).first()

    @staticmethod
    def build_list_query(
        db: Session,
        employee_id: Optional[int] = None,
        window: Optional[tuple[datetime, datetime]] = None,
        status: Optional[str] = None,
    ) -> Query:
        query = db.query(Appointment).options(
            joinedload(Appointment.client).joinedload(Client.user),
            joinedload(Appointment.employee).joinedload(Employee.user),
            selectinload(Appointment.services).joinedload(AppointmentService.service),
        )
        if employee_id is not None:
            query = query.filter(Appointment.empleado_id == employee_id)
        if window is not None:
            # Appointments starting on the requested local day
            query = query.filter(Appointment.starts_at >= window[0], Appointment.starts_at < window[1])
        if status is not None:
            query = query.filter(Appointment.status == status)
        return query

    @staticmethod
    def delete(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
        db.commit()

    @staticmethod
    def get_for_client_user(db: Session, appointment_id: int, user_id: int) -> Optional[Appointment]:
        """The appointment, only when it belongs to the client record of `user_id`"""
        return (
            db.query(Appointment)
            .join(Client, Appointment.cliente_id == Client.id)
            .filter(Appointment.id == appointment_id, Client.usuario_id == user_id)
            .first()
        )
