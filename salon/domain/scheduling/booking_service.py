"""Booking service - Turns a validated reservation request into a persisted appointment"""

import logging
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...errors import BookingError, ConflictError, InternalError, NotFoundError, ValidationError
from ...models import (
    OVERLAP_CONSTRAINT_NAME,
    Appointment,
    AppointmentService,
    AppointmentStatus,
    Client,
    Payment,
    User,
)
from ...shared.business_time import local_datetime, to_utc
from .conflict_validator import ConflictValidator
from .repository import SchedulingRepository
from .schemas import BookingRequest
from .slot_templates import is_template_start
from .time_calculator import to_minutes

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BookingService:
    """Service layer for the reservation flow"""

    def __init__(
        self,
        db: Session,
        notifier=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.repo = SchedulingRepository()
        self.notifier = notifier
        self.clock = clock or _utc_now

    async def book(self, user: User, data: BookingRequest) -> Appointment:
        """Create the appointment, then notify. Notification never affects the outcome."""
        appointment = self.create_appointment(user, data)

        if self.notifier:
            try:
                await self.notifier.appointment_booked(appointment)
            except Exception as e:
                logger.error(f"❌ Failed to send booking notifications for cita {appointment.id}: {e}")

        return appointment

    def create_appointment(self, user: User, data: BookingRequest) -> Appointment:
        """
        Book one appointment atomically.

        The employee row lock (SELECT ... FOR UPDATE, or BEGIN IMMEDIATE on
        SQLite) is taken first and held until commit, so the conflict check and
        the insert cannot interleave with another booking for the same employee.
        """
        starts_at = self._resolve_start(data)
        logger.info(
            f"📅 Booking request from user {user.id}: employee {data.empleadoId} "
            f"at {starts_at.isoformat()}"
        )

        try:
            employee = self.repo.lock_employee(self.db, data.empleadoId)
            if not employee or not employee.activo or not employee.user.activo:
                raise NotFoundError("Empleado no encontrado", reason="employee_not_found")

            requested_ids = [selection.id for selection in data.servicios]
            catalog = self.repo.get_active_services_by_ids(self.db, requested_ids)
            missing = sorted(set(requested_ids) - set(catalog))
            if missing:
                raise NotFoundError(
                    f"Servicios no encontrados: {missing}", reason="service_not_found"
                )

            total_minutes = sum(
                (selection.duracion or catalog[selection.id].duracion_minutos) * selection.cantidad
                for selection in data.servicios
            )
            ends_at = starts_at + timedelta(minutes=total_minutes)

            client = self._resolve_client(user)

            ConflictValidator(self.db).ensure_available(employee.id, starts_at, ends_at)

            appointment = Appointment(
                cliente_id=client.id,
                empleado_id=employee.id,
                starts_at=starts_at,
                ends_at=ends_at,
                status=AppointmentStatus.PENDING.value,
                notas=data.notas,
            )
            self.db.add(appointment)
            self.db.flush()

            for selection in data.servicios:
                self.db.add(
                    AppointmentService(
                        cita_id=appointment.id,
                        servicio_id=selection.id,
                        cantidad=selection.cantidad,
                        precio_aplicado=catalog[selection.id].precio,
                        descuento=Decimal("0"),
                    )
                )

            self.db.add(Payment(cita_id=appointment.id, monto_total=Decimal(str(data.total))))

            self.db.commit()
            self.db.refresh(appointment)
        except BookingError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            if OVERLAP_CONSTRAINT_NAME in str(e.orig):
                logger.warning(
                    f"⚠️ Exclusion constraint rejected booking for employee {data.empleadoId}"
                )
                raise ConflictError(
                    "El horario seleccionado ya no está disponible",
                    reason=ConflictError.APPOINTMENT_OVERLAP,
                ) from e
            logger.error(f"❌ Integrity error while booking: {e}")
            raise InternalError("Error al procesar la reservación") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error while booking for user {user.id}: {e}")
            raise InternalError("Error al procesar la reservación") from e

        logger.info(
            f"✅ Cita {appointment.id} booked: employee {employee.id}, "
            f"{total_minutes} min, client {client.id}"
        )
        return appointment

    def _resolve_start(self, data: BookingRequest) -> datetime:
        inicio = data.horario.inicio
        if not is_template_start(data.fecha, inicio):
            raise ValidationError(
                f"El horario {inicio} no es válido para la fecha {data.fecha.isoformat()}",
                reason="invalid_slot",
            )

        minutes = to_minutes(inicio)
        starts_at = to_utc(local_datetime(data.fecha, time(minutes // 60, minutes % 60)))
        if starts_at <= self.clock():
            raise ValidationError("No se puede reservar en el pasado", reason="past_date")
        return starts_at

    def _resolve_client(self, user: User) -> Client:
        client = self.repo.get_client_by_user_id(self.db, user.id)
        if client:
            return client
        logger.info(f"👤 Creating client record for user {user.id}")
        return self.repo.create_minimal_client(self.db, user.id)

    def get_client_appointments(self, user: User) -> list[Appointment]:
        """Caller's appointments, newest first; empty when they never booked"""
        client = self.repo.get_client_by_user_id(self.db, user.id)
        if not client:
            return []
        return self.repo.get_client_appointments(self.db, client.id)
