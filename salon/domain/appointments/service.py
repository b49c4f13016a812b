"""Appointment service - Status changes and staff listings"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import InternalError, NotFoundError, PermissionDeniedError, ValidationError
from ...models import Appointment, AppointmentStatus, Role, User
from ...shared.business_time import local_day_bounds
from ...shared.pagination import SortDirection, apply_sort, paginate
from .repository import AppointmentRepository
from .schemas import AppointmentSortField
from .state_machine import ensure_transition

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    AppointmentSortField.FECHA_HORA_INICIO: Appointment.starts_at,
    AppointmentSortField.FECHA_HORA_FIN: Appointment.ends_at,
    AppointmentSortField.ESTADO: Appointment.status,
    AppointmentSortField.CREATED_AT: Appointment.created_at,
}


class AppointmentStatusService:
    """Service layer for appointment lifecycle operations"""

    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.repo = AppointmentRepository()
        self.notifier = notifier

    def _own_employee_id(self, user: User) -> Optional[int]:
        """Employees act only on their own agenda; managers see everything"""
        if user.rol != Role.EMPLOYEE.value:
            return None
        employee = self.repo.get_employee_by_user_id(self.db, user.id)
        if not employee:
            raise PermissionDeniedError("El usuario no tiene un perfil de empleado")
        return employee.id

    def list_appointments(
        self,
        user: User,
        employee_id: Optional[int] = None,
        day: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
        order: AppointmentSortField = AppointmentSortField.FECHA_HORA_INICIO,
        direction: SortDirection = SortDirection.ASC,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Appointment], dict]:
        own_id = self._own_employee_id(user)
        if own_id is not None:
            if employee_id is not None and employee_id != own_id:
                raise PermissionDeniedError("Solo puede consultar su propia agenda")
            employee_id = own_id

        query = self.repo.build_list_query(
            self.db,
            employee_id=employee_id,
            window=local_day_bounds(day) if day else None,
            status=status.value if status else None,
        )
        query = apply_sort(query, SORT_COLUMNS[order], direction, Appointment.id)
        return paginate(query, page, limit)

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Cita no encontrada", reason="appointment_not_found")
        return appointment

    async def change_status(
        self,
        user: User,
        appointment_id: int,
        target: AppointmentStatus,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Staff-side status change; cancelling someone else's appointment needs a reason"""
        appointment = self.get_appointment(appointment_id)

        own_id = self._own_employee_id(user)
        if own_id is not None and appointment.empleado_id != own_id:
            raise PermissionDeniedError("Solo puede modificar citas de su propia agenda")

        if target == AppointmentStatus.CANCELLED and not reason:
            raise ValidationError(
                "Debe indicar el motivo de la cancelación", reason="cancellation_reason_required"
            )

        return await self._transition(appointment, target, user, reason)

    async def cancel_own(self, user: User, appointment_id: int, reason: Optional[str] = None) -> Appointment:
        """Client cancels one of their own appointments"""
        appointment = self.repo.get_for_client_user(self.db, appointment_id, user.id)
        if not appointment:
            raise NotFoundError("Cita no encontrada", reason="appointment_not_found")
        return await self._transition(appointment, AppointmentStatus.CANCELLED, user, reason)

    async def _transition(
        self,
        appointment: Appointment,
        target: AppointmentStatus,
        actor: User,
        reason: Optional[str],
    ) -> Appointment:
        previous = appointment.status
        ensure_transition(previous, target.value)

        appointment.status = target.value
        if target == AppointmentStatus.CANCELLED:
            appointment.cancelled_by = actor.id
            appointment.cancellation_reason = reason

        try:
            self.db.commit()
            self.db.refresh(appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update cita {appointment.id} to {target.value}: {e}")
            raise InternalError("Error al actualizar la cita") from e

        logger.info(
            f"🔄 Cita {appointment.id}: {previous} → {appointment.status} (by user {actor.id})"
        )

        if self.notifier:
            try:
                await self.notifier.appointment_status_changed(appointment, previous)
            except Exception as e:
                logger.error(f"❌ Failed to notify status change for cita {appointment.id}: {e}")

        return appointment

    def delete_appointment(self, appointment_id: int) -> None:
        """Administrative cleanup; the only hard delete of an appointment"""
        appointment = self.get_appointment(appointment_id)
        try:
            self.repo.delete(self.db, appointment)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete cita {appointment_id}: {e}")
            raise InternalError("Error al eliminar la cita") from e
        logger.info(f"🗑️ Cita {appointment_id} deleted")
