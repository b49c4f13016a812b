"""Appointment domain schemas - Pydantic models for validation"""

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import AppointmentStatus
from ...shared.business_time import format_local


class AppointmentSortField(str, enum.Enum):
    """Allow-listed sort keys for GET /citas"""

    FECHA_HORA_INICIO = "fecha_hora_inicio"
    FECHA_HORA_FIN = "fecha_hora_fin"
    ESTADO = "estado"
    CREATED_AT = "created_at"


class StatusChangeRequest(BaseModel):
    estado: AppointmentStatus
    motivo: Optional[str] = Field(default=None, max_length=500)

    @field_validator("motivo")
    @classmethod
    def strip_reason(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v


class AppointmentServiceItem(BaseModel):
    servicio_id: int
    nombre: Optional[str] = None
    cantidad: int
    precio_aplicado: float
    descuento: float


class AppointmentResponse(BaseModel):
    id: int
    cliente_id: int
    cliente_nombre: Optional[str] = None
    empleado_id: int
    empleado_nombre: Optional[str] = None
    fecha_hora_inicio: str
    fecha_hora_fin: str
    estado: str
    notas: Optional[str] = None
    cancelado_por: Optional[int] = None
    motivo_cancelacion: Optional[str] = None
    servicios: list[AppointmentServiceItem] = []
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, appointment) -> "AppointmentResponse":
        client_user = appointment.client.user if appointment.client else None
        employee_user = appointment.employee.user if appointment.employee else None
        return cls(
            id=appointment.id,
            cliente_id=appointment.cliente_id,
            cliente_nombre=client_user.full_name if client_user else None,
            empleado_id=appointment.empleado_id,
            empleado_nombre=employee_user.full_name if employee_user else None,
            fecha_hora_inicio=format_local(appointment.starts_at),
            fecha_hora_fin=format_local(appointment.ends_at),
            estado=appointment.status,
            notas=appointment.notas,
            cancelado_por=appointment.cancelled_by,
            motivo_cancelacion=appointment.cancellation_reason,
            servicios=[
                AppointmentServiceItem(
                    servicio_id=line.servicio_id,
                    nombre=line.service.nombre if line.service else None,
                    cantidad=line.cantidad,
                    precio_aplicado=float(line.precio_aplicado),
                    descuento=float(line.descuento or 0),
                )
                for line in appointment.services
            ],
            created_at=appointment.created_at,
        )


class AppointmentListResponse(BaseModel):
    success: bool = True
    count: int
    citas: list[AppointmentResponse]
    paginacion: dict


class AppointmentDetailResponse(BaseModel):
    success: bool = True
    message: str
    data: AppointmentResponse
