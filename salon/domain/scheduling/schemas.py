"""Reservation schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_iso_date, validate_time_of_day


class ServiceSelection(BaseModel):
    """One selected service; `duracion` overrides the catalog duration when given"""

    id: int = Field(gt=0)
    duracion: Optional[int] = Field(default=None, gt=0, le=24 * 60)
    cantidad: int = Field(default=1, ge=1, le=20)


class SlotSelection(BaseModel):
    inicio: str
    fin: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_plain_time(cls, v):
        # Older clients send the slot as a bare "HH:MM" string
        if isinstance(v, str):
            return {"inicio": v}
        return v

    @field_validator("inicio", "fin")
    @classmethod
    def validate_time(cls, v):
        return validate_time_of_day(v)


class BookingRequest(BaseModel):
    """Schema for POST /reservacion/procesar"""

    empleadoId: int = Field(gt=0)
    servicios: list[ServiceSelection] = Field(min_length=1)
    fecha: date
    horario: SlotSelection
    total: float = Field(gt=0)
    notas: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("fecha", mode="before")
    @classmethod
    def validate_fecha(cls, v):
        if isinstance(v, str):
            return validate_iso_date(v)
        return v


class BookingData(BaseModel):
    citaId: int
    fecha: str
    horaInicio: str
    horaFin: str
    total: float


class BookingResponse(BaseModel):
    success: bool = True
    message: str
    data: BookingData


class ServiceItem(BaseModel):
    id: int
    nombre: str
    descripcion: Optional[str] = None
    precio: float
    duracion_minutos: int
    categoria_id: Optional[int] = None
    categoria_nombre: Optional[str] = None


class ServiceListResponse(BaseModel):
    success: bool = True
    count: int
    data: list[ServiceItem]


class EmployeeItem(BaseModel):
    id: int
    usuario_id: int
    nombre: Optional[str] = None
    apellido: Optional[str] = None
    email: str
    titulo: Optional[str] = None
    biografia: Optional[str] = None


class EmployeeListResponse(BaseModel):
    success: bool = True
    count: int
    empleados: list[EmployeeItem]


class SlotItem(BaseModel):
    inicio: str
    fin: str


class AvailabilityResponse(BaseModel):
    success: bool = True
    count: int
    horarios: list[SlotItem]
    empleadoAusente: bool = False


class ClientAppointmentItem(BaseModel):
    id: int
    cliente_id: int
    empleado_id: int
    fecha_hora_inicio: str  # Local ISO time
    fecha_hora_fin: str
    empleado_nombre: str
    estado_nombre: str
    servicios: list[str]
    created_at: Optional[datetime] = None


class ClientAppointmentsResponse(BaseModel):
    success: bool = True
    count: int
    citas: list[ClientAppointmentItem]


class CancelRequest(BaseModel):
    motivo: Optional[str] = Field(default=None, max_length=500)


class MessageResponse(BaseModel):
    success: bool = True
    message: str
