"""Absence domain schemas - Pydantic models for validation"""

import enum
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import AbsenceReason
from ...shared.business_time import format_local, localize, to_local

_ONE_MICROSECOND = timedelta(microseconds=1)


class AbsenceSortField(str, enum.Enum):
    """Allow-listed sort keys for GET /ausencias"""

    FECHA_INICIO = "fecha_inicio"
    FECHA_FIN = "fecha_fin"
    MOTIVO = "motivo"


class AbsenceCreate(BaseModel):
    """
    Schema for creating an absence.

    Naive timestamps are read as business local time.
    """

    empleadoId: Optional[int] = Field(default=None, gt=0)
    fecha_inicio: datetime
    fecha_fin: datetime
    motivo: AbsenceReason
    descripcion: Optional[str] = Field(default=None, max_length=500)
    aprobada: bool = False

    @field_validator("fecha_inicio", "fecha_fin")
    @classmethod
    def attach_business_timezone(cls, v):
        return localize(v)

    @model_validator(mode="after")
    def check_range(self):
        if self.fecha_inicio >= self.fecha_fin:
            raise ValueError("fecha_inicio must be before fecha_fin")
        return self


class AbsenceResponse(BaseModel):
    id: int
    empleado_id: int
    empleado_nombre: Optional[str] = None
    fecha_inicio: str  # Local ISO time
    fecha_fin: str
    motivo: str
    descripcion: Optional[str] = None
    estado: str
    aprobada: bool
    dias_ausencia: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, absence) -> "AbsenceResponse":
        employee_user = absence.employee.user if absence.employee else None
        first_day = to_local(absence.starts_at).date()
        # An absence ending exactly at midnight does not touch that day
        last_day = to_local(absence.ends_at - _ONE_MICROSECOND).date()
        return cls(
            id=absence.id,
            empleado_id=absence.empleado_id,
            empleado_nombre=employee_user.full_name if employee_user else None,
            fecha_inicio=format_local(absence.starts_at),
            fecha_fin=format_local(absence.ends_at),
            motivo=absence.motivo,
            descripcion=absence.descripcion,
            estado=absence.status,
            aprobada=absence.aprobada,
            dias_ausencia=(last_day - first_day).days + 1,
            created_at=absence.created_at,
        )


class AbsenceListResponse(BaseModel):
    success: bool = True
    count: int
    ausencias: list[AbsenceResponse]
    paginacion: dict


class AbsenceDetailResponse(BaseModel):
    success: bool = True
    message: str
    data: AbsenceResponse
