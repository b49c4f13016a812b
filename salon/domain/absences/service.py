"""Absence service - Business logic for employee absences"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ...models import MANAGER_ROLES, Absence, AbsenceReason, AbsenceStatus, User
from ...shared.business_time import local_day_bounds, to_utc
from ...shared.pagination import SortDirection, apply_sort, paginate
from .repository import AbsenceRepository
from .schemas import AbsenceCreate, AbsenceSortField

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    AbsenceSortField.FECHA_INICIO: Absence.starts_at,
    AbsenceSortField.FECHA_FIN: Absence.ends_at,
    AbsenceSortField.MOTIVO: Absence.motivo,
}


class AbsenceService:
    """Service layer for absence business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AbsenceRepository()

    def _is_manager(self, user: User) -> bool:
        return user.rol in MANAGER_ROLES

    def _own_employee_id(self, user: User) -> int:
        employee = self.repo.get_employee_by_user_id(self.db, user.id)
        if not employee:
            raise PermissionDeniedError("El usuario no tiene un perfil de empleado")
        return employee.id

    def get_absence(self, absence_id: int) -> Absence:
        absence = self.repo.get_by_id(self.db, absence_id)
        if not absence:
            raise NotFoundError("Ausencia no encontrada", reason="absence_not_found")
        return absence

    def create_absence(self, user: User, data: AbsenceCreate) -> Absence:
        """
        Employees register their own absences as pending. Managers may register
        one for any employee, optionally already approved.
        """
        if self._is_manager(user):
            if data.empleadoId is None:
                raise ValidationError("empleadoId es obligatorio", reason="employee_required")
            employee = self.repo.get_employee(self.db, data.empleadoId)
            if not employee:
                raise NotFoundError("Empleado no encontrado", reason="employee_not_found")
            employee_id = employee.id
        else:
            employee_id = self._own_employee_id(user)
            if data.empleadoId is not None and data.empleadoId != employee_id:
                raise PermissionDeniedError("Solo puede registrar sus propias ausencias")
            if data.aprobada:
                raise PermissionDeniedError("Solo un administrador puede aprobar ausencias")

        status = AbsenceStatus.APPROVED if data.aprobada else AbsenceStatus.PENDING
        try:
            absence = self.repo.create(
                self.db,
                empleado_id=employee_id,
                starts_at=to_utc(data.fecha_inicio),
                ends_at=to_utc(data.fecha_fin),
                motivo=data.motivo.value,
                descripcion=data.descripcion,
                status=status.value,
                created_by=user.id,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create absence for employee {employee_id}: {e}")
            raise InternalError("Error al registrar la ausencia") from e

        logger.info(
            f"📥 Absence {absence.id} ({absence.motivo}, {absence.status}) created for employee "
            f"{employee_id} by user {user.id}"
        )
        if absence.aprobada:
            self._warn_about_booked_appointments(absence)
        return absence

    def list_absences(
        self,
        user: User,
        employee_id: Optional[int] = None,
        reason: Optional[AbsenceReason] = None,
        status: Optional[AbsenceStatus] = None,
        since: Optional[date] = None,
        until: Optional[date] = None,
        order: AbsenceSortField = AbsenceSortField.FECHA_INICIO,
        direction: SortDirection = SortDirection.ASC,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Absence], dict]:
        if not self._is_manager(user):
            own_id = self._own_employee_id(user)
            if employee_id is not None and employee_id != own_id:
                raise PermissionDeniedError("Solo puede consultar sus propias ausencias")
            employee_id = own_id

        if since and until and since > until:
            raise ValidationError("desde debe ser anterior a hasta", reason="invalid_range")

        query = self.repo.build_list_query(
            self.db,
            employee_id=employee_id,
            reason=reason.value if reason else None,
            status=status.value if status else None,
            window_start=local_day_bounds(since)[0] if since else None,
            window_end=local_day_bounds(until)[1] if until else None,
        )
        query = apply_sort(query, SORT_COLUMNS[order], direction, Absence.id)
        return paginate(query, page, limit)

    def approve_absence(self, user: User, absence_id: int) -> Absence:
        absence = self.get_absence(absence_id)
        if absence.status != AbsenceStatus.PENDING.value:
            raise ConflictError(
                f"Solo se pueden aprobar ausencias pendientes (estado actual: {absence.status})",
                reason=ConflictError.INVALID_TRANSITION,
            )
        absence = self._set_status(absence, AbsenceStatus.APPROVED, user)
        self._warn_about_booked_appointments(absence)
        return absence

    def cancel_absence(self, user: User, absence_id: int) -> Absence:
        absence = self.get_absence(absence_id)
        if not self._is_manager(user) and absence.empleado_id != self._own_employee_id(user):
            raise PermissionDeniedError("Solo puede cancelar sus propias ausencias")
        if absence.status == AbsenceStatus.CANCELLED.value:
            raise ConflictError(
                "La ausencia ya está cancelada", reason=ConflictError.INVALID_TRANSITION
            )
        return self._set_status(absence, AbsenceStatus.CANCELLED, user)

    def _set_status(self, absence: Absence, status: AbsenceStatus, user: User) -> Absence:
        previous = absence.status
        absence.status = status.value
        try:
            self.db.commit()
            self.db.refresh(absence)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update absence {absence.id}: {e}")
            raise InternalError("Error al actualizar la ausencia") from e
        logger.info(f"🔄 Absence {absence.id}: {previous} → {absence.status} (by user {user.id})")
        return absence

    def _warn_about_booked_appointments(self, absence: Absence) -> None:
        # Existing bookings are left untouched; staff reschedule them by hand
        booked = self.repo.count_blocking_appointments(
            self.db, absence.empleado_id, absence.starts_at, absence.ends_at
        )
        if booked:
            logger.warning(
                f"⚠️ Approved absence {absence.id} overlaps {booked} booked appointment(s) "
                f"of employee {absence.empleado_id}"
            )
