"""Appointment router - Staff endpoints for the appointment lifecycle"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import STAFF_ROLES, AppointmentStatus, Role, User
from ...services.notification_service import AppointmentNotifier
from ...shared.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SortDirection
from .schemas import (
    AppointmentDetailResponse,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentSortField,
    StatusChangeRequest,
)
from .service import AppointmentStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/citas", tags=["Appointments"])


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentStatusService:
    """Dependency injection for AppointmentStatusService"""
    return AppointmentStatusService(db, notifier=AppointmentNotifier(db))


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    empleadoId: Optional[int] = Query(None, gt=0),
    fecha: Optional[date] = Query(None),
    estado: Optional[AppointmentStatus] = Query(None),
    orden: AppointmentSortField = Query(AppointmentSortField.FECHA_HORA_INICIO),
    direccion: SortDirection = Query(SortDirection.ASC),
    pagina: int = Query(1, ge=1),
    limite: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    service: AppointmentStatusService = Depends(get_appointment_service),
):
    """List appointments; employees only see their own agenda"""
    appointments, pagination = service.list_appointments(
        current_user,
        employee_id=empleadoId,
        day=fecha,
        status=estado,
        order=orden,
        direction=direccion,
        page=pagina,
        limit=limite,
    )
    return AppointmentListResponse(
        count=len(appointments),
        citas=[AppointmentResponse.from_model(a) for a in appointments],
        paginacion=pagination,
    )


@router.patch("/{appointment_id}/estado", response_model=AppointmentDetailResponse)
async def change_appointment_status(
    appointment_id: int,
    data: StatusChangeRequest,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    service: AppointmentStatusService = Depends(get_appointment_service),
):
    appointment = await service.change_status(current_user, appointment_id, data.estado, data.motivo)
    appointment = service.get_appointment(appointment.id)
    return AppointmentDetailResponse(
        message=f"Cita actualizada a {appointment.status}",
        data=AppointmentResponse.from_model(appointment),
    )


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    current_user: User = Depends(require_roles(Role.ADMIN.value)),
    service: AppointmentStatusService = Depends(get_appointment_service),
):
    """Administrative cleanup of an appointment and its service lines and payments"""
    logger.info(f"🗑️ User {current_user.id} deleting cita {appointment_id}")
    service.delete_appointment(appointment_id)
    return {"success": True, "message": "Cita eliminada"}
