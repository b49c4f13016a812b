"""Scheduling repository - Database operations for the booking engine"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session, joinedload, selectinload

from ...models import (
    BLOCKING_ABSENCE_REASONS,
    Absence,
    AbsenceStatus,
    Appointment,
    Client,
    Employee,
    RELEASED_STATUSES,
    Role,
    Service,
    ServiceCategory,
    User,
)
from .time_calculator import sql_overlaps


def _blocking_appointment_filter(employee_id, starts_at, ends_at):
    return and_(
        Appointment.empleado_id == employee_id,
        Appointment.status.notin_(RELEASED_STATUSES),
        sql_overlaps(Appointment.starts_at, Appointment.ends_at, starts_at, ends_at),
    )


def _blocking_absence_filter(employee_id, starts_at, ends_at):
    return and_(
        Absence.empleado_id == employee_id,
        Absence.status == AbsenceStatus.APPROVED.value,
        Absence.motivo.in_(BLOCKING_ABSENCE_REASONS),
        sql_overlaps(Absence.starts_at, Absence.ends_at, starts_at, ends_at),
    )


class SchedulingRepository:
    """Repository for the queries behind availability and booking"""

    # Catalog
    @staticmethod
    def list_active_services(db: Session) -> list[tuple[Service, Optional[str]]]:
        """Active services with their category name, ordered by category then name"""
        return (
            db.query(Service, ServiceCategory.nombre)
            .outerjoin(ServiceCategory, Service.categoria_id == ServiceCategory.id)
            .filter(Service.activo.is_(True))
            .order_by(ServiceCategory.nombre, Service.nombre)
            .all()
        )

    @staticmethod
    def get_active_services_by_ids(db: Session, service_ids: list[int]) -> dict[int, Service]:
        if not service_ids:
            return {}
        services = (
            db.query(Service)
            .filter(Service.id.in_(set(service_ids)), Service.activo.is_(True))
            .all()
        )
        return {service.id: service for service in services}

    # Employees
    @staticmethod
    def get_active_employee(db: Session, employee_id: int) -> Optional[Employee]:
        return (
            db.query(Employee)
            .join(User, Employee.usuario_id == User.id)
            .filter(Employee.id == employee_id, Employee.activo.is_(True), User.activo.is_(True))
            .first()
        )

    @staticmethod
    def lock_employee(db: Session, employee_id: int) -> Optional[Employee]:
        """
        Take a row lock on the employee, serializing bookings on their timeline.
        Held until the surrounding transaction commits or rolls back.
        """
        return (
            db.query(Employee)
            .filter(Employee.id == employee_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def list_bookable_employees(
        db: Session,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> list[Employee]:
        """Active employees, optionally excluding those busy or absent in the window"""
        query = (
            db.query(Employee)
            .join(User, Employee.usuario_id == User.id)
            .options(joinedload(Employee.user))
            .filter(
                Employee.activo.is_(True),
                User.activo.is_(True),
                User.rol == Role.EMPLOYEE.value,
            )
        )

        if window_start is not None and window_end is not None:
            query = query.filter(
                ~exists().where(_blocking_appointment_filter(Employee.id, window_start, window_end)),
                ~exists().where(_blocking_absence_filter(Employee.id, window_start, window_end)),
            )

        return query.order_by(User.nombre, User.apellido).all()

    # Timeline
    @staticmethod
    def blocking_appointments_between(
        db: Session, employee_id: int, starts_at: datetime, ends_at: datetime
    ) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(_blocking_appointment_filter(employee_id, starts_at, ends_at))
            .order_by(Appointment.starts_at)
            .all()
        )

    @staticmethod
    def blocking_absences_between(
        db: Session, employee_id: int, starts_at: datetime, ends_at: datetime
    ) -> list[Absence]:
        return (
            db.query(Absence)
            .filter(_blocking_absence_filter(employee_id, starts_at, ends_at))
            .order_by(Absence.starts_at)
            .all()
        )

    # Clients
    @staticmethod
    def get_client_by_user_id(db: Session, user_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.usuario_id == user_id).first()

    @staticmethod
    def create_minimal_client(db: Session, user_id: int) -> Client:
        """Insert a bare client row inside the caller's transaction"""
        client = Client(usuario_id=user_id)
        db.add(client)
        db.flush()
        return client

    @staticmethod
    def get_client_appointments(db: Session, client_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(
                joinedload(Appointment.employee).joinedload(Employee.user),
                selectinload(Appointment.services),
            )
            .filter(Appointment.cliente_id == client_id)
            .order_by(Appointment.starts_at.desc())
            .all()
        )

    @staticmethod
    def get_client_appointment(
        db: Session, appointment_id: int, client_id: int
    ) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.cliente_id == client_id)
            .first()
        )
