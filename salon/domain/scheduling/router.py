"""Reservation router - Public catalog, availability and client booking endpoints"""

import logging
from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import BOOKING_RATE_LIMIT, BOOKING_RATE_WINDOW_SECONDS
from ...database import get_db
from ...errors import ValidationError
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import AppointmentNotifier
from ...shared.business_time import format_local, local_datetime, to_utc
from ...shared.validators import parse_id_list, validate_time_of_day
from ..appointments.service import AppointmentStatusService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .schemas import (
    AvailabilityResponse,
    BookingData,
    BookingRequest,
    BookingResponse,
    CancelRequest,
    ClientAppointmentItem,
    ClientAppointmentsResponse,
    EmployeeItem,
    EmployeeListResponse,
    MessageResponse,
    ServiceItem,
    ServiceListResponse,
    SlotItem,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservacion", tags=["Reservations"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT,
    window_seconds=BOOKING_RATE_WINDOW_SECONDS,
    key_prefix="reservacion_procesar",
)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, notifier=AppointmentNotifier(db))


def get_appointment_service(db: Session = Depends(get_db)) -> AppointmentStatusService:
    return AppointmentStatusService(db, notifier=AppointmentNotifier(db))


def _parse_time(value: str, field: str) -> time:
    try:
        hours, minutes = validate_time_of_day(value).split(":")
    except ValueError as e:
        raise ValidationError(f"{field}: formato de hora inválido (HH:MM)", reason="invalid_time") from e
    return time(int(hours), int(minutes))


@router.get("/servicios", response_model=ServiceListResponse)
async def list_services(service: AvailabilityService = Depends(get_availability_service)):
    """Active services ordered by category, then name"""
    rows = service.list_services()
    data = [
        ServiceItem(
            id=s.id,
            nombre=s.nombre,
            descripcion=s.descripcion,
            precio=float(s.precio),
            duracion_minutos=s.duracion_minutos,
            categoria_id=s.categoria_id,
            categoria_nombre=categoria_nombre,
        )
        for s, categoria_nombre in rows
    ]
    return ServiceListResponse(count=len(data), data=data)


@router.get("/empleados", response_model=EmployeeListResponse)
async def list_employees(
    fecha: Optional[date] = Query(None),
    hora_inicio: Optional[str] = Query(None),
    hora_fin: Optional[str] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    """
    Active employees. When a full window (fecha + hora_inicio + hora_fin) is
    given, employees with an appointment or approved absence overlapping it
    are left out.
    """
    window_params = (fecha, hora_inicio, hora_fin)
    window_start = window_end = None

    if any(p is not None for p in window_params):
        if not all(p is not None for p in window_params):
            raise ValidationError(
                "fecha, hora_inicio y hora_fin deben enviarse juntos", reason="incomplete_window"
            )
        window_start = to_utc(local_datetime(fecha, _parse_time(hora_inicio, "hora_inicio")))
        window_end = to_utc(local_datetime(fecha, _parse_time(hora_fin, "hora_fin")))
        if not window_start < window_end:
            raise ValidationError(
                "hora_inicio debe ser anterior a hora_fin", reason="invalid_window"
            )

    employees = service.list_bookable_employees(window_start, window_end)
    items = [
        EmployeeItem(
            id=e.id,
            usuario_id=e.usuario_id,
            nombre=e.user.nombre,
            apellido=e.user.apellido,
            email=e.user.email,
            titulo=e.titulo,
            biografia=e.biografia,
        )
        for e in employees
    ]
    return EmployeeListResponse(count=len(items), empleados=items)


@router.get("/horarios", response_model=AvailabilityResponse)
async def get_available_slots(
    empleadoId: int = Query(..., gt=0),
    fecha: date = Query(...),
    servicios: Optional[str] = Query(None, description="Comma separated service ids"),
    service: AvailabilityService = Depends(get_availability_service),
):
    try:
        service_ids = parse_id_list(servicios)
    except ValueError as e:
        raise ValidationError(str(e), reason="invalid_services") from e

    result = service.get_available_slots(empleadoId, fecha, service_ids or None)
    horarios = [SlotItem(inicio=slot.inicio, fin=slot.fin) for slot in result.slots]
    return AvailabilityResponse(
        count=len(horarios), horarios=horarios, empleadoAusente=result.employee_absent
    )


@router.post("/procesar", response_model=BookingResponse, dependencies=[Depends(booking_rate_limit)])
async def process_booking(
    data: BookingRequest,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    appointment = await service.book(current_user, data)
    return BookingResponse(
        message="Reservación procesada exitosamente",
        data=BookingData(
            citaId=appointment.id,
            fecha=format_local(appointment.starts_at, "%Y-%m-%d"),
            horaInicio=format_local(appointment.starts_at, "%H:%M"),
            horaFin=format_local(appointment.ends_at, "%H:%M"),
            total=data.total,
        ),
    )


@router.get("/mis-citas", response_model=ClientAppointmentsResponse)
async def get_my_appointments(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Caller's appointments, newest first, with local wall-clock times"""
    appointments = service.get_client_appointments(current_user)
    citas = [
        ClientAppointmentItem(
            id=a.id,
            cliente_id=a.cliente_id,
            empleado_id=a.empleado_id,
            fecha_hora_inicio=format_local(a.starts_at),
            fecha_hora_fin=format_local(a.ends_at),
            empleado_nombre=a.employee.user.full_name,
            estado_nombre=a.status,
            servicios=[line.service.nombre for line in a.services if line.service],
            created_at=a.created_at,
        )
        for a in appointments
    ]
    return ClientAppointmentsResponse(count=len(citas), citas=citas)


@router.put("/cancelar/{appointment_id}", response_model=MessageResponse)
async def cancel_my_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentStatusService = Depends(get_appointment_service),
):
    await service.cancel_own(current_user, appointment_id, data.motivo if data else None)
    return MessageResponse(message="Cita cancelada exitosamente")
