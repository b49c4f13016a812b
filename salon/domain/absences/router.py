"""Absence router - FastAPI endpoints for employee absences"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ...models import MANAGER_ROLES, STAFF_ROLES, AbsenceReason, AbsenceStatus, User
from ...shared.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SortDirection
from .schemas import (
    AbsenceCreate,
    AbsenceDetailResponse,
    AbsenceListResponse,
    AbsenceResponse,
    AbsenceSortField,
)
from .service import AbsenceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ausencias", tags=["Absences"])


def get_absence_service(db: Session = Depends(get_db)) -> AbsenceService:
    """Dependency injection for AbsenceService"""
    return AbsenceService(db)


@router.post("", response_model=AbsenceDetailResponse, status_code=201)
async def create_absence(
    data: AbsenceCreate,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    service: AbsenceService = Depends(get_absence_service),
):
    absence = service.create_absence(current_user, data)
    return AbsenceDetailResponse(
        message="Ausencia registrada", data=AbsenceResponse.from_model(absence)
    )


@router.get("", response_model=AbsenceListResponse)
async def list_absences(
    empleadoId: Optional[int] = Query(None, gt=0),
    motivo: Optional[AbsenceReason] = Query(None),
    estado: Optional[AbsenceStatus] = Query(None),
    desde: Optional[date] = Query(None),
    hasta: Optional[date] = Query(None),
    orden: AbsenceSortField = Query(AbsenceSortField.FECHA_INICIO),
    direccion: SortDirection = Query(SortDirection.ASC),
    pagina: int = Query(1, ge=1),
    limite: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    service: AbsenceService = Depends(get_absence_service),
):
    """List absences overlapping [desde, hasta]; employees only see their own"""
    absences, pagination = service.list_absences(
        current_user,
        employee_id=empleadoId,
        reason=motivo,
        status=estado,
        since=desde,
        until=hasta,
        order=orden,
        direction=direccion,
        page=pagina,
        limit=limite,
    )
    return AbsenceListResponse(
        count=len(absences),
        ausencias=[AbsenceResponse.from_model(a) for a in absences],
        paginacion=pagination,
    )


@router.patch("/{absence_id}/aprobar", response_model=AbsenceDetailResponse)
async def approve_absence(
    absence_id: int,
    current_user: User = Depends(require_roles(*MANAGER_ROLES)),
    service: AbsenceService = Depends(get_absence_service),
):
    absence = service.approve_absence(current_user, absence_id)
    return AbsenceDetailResponse(message="Ausencia aprobada", data=AbsenceResponse.from_model(absence))


@router.patch("/{absence_id}/cancelar", response_model=AbsenceDetailResponse)
async def cancel_absence(
    absence_id: int,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    service: AbsenceService = Depends(get_absence_service),
):
    absence = service.cancel_absence(current_user, absence_id)
    return AbsenceDetailResponse(
        message="Ausencia cancelada", data=AbsenceResponse.from_model(absence)
    )
