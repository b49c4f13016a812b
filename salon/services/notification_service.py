"""
Appointment Notification Service
Writes in-app notifications and sends client emails for appointment events.
Every channel is best-effort: failures are logged and never raised.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..email_service import (
    EmailNotConfiguredError,
    send_appointment_booked_email,
    send_appointment_reminder_email,
    send_appointment_status_email,
)
from ..models import Appointment, AppointmentStatus, Notification
from ..shared.business_time import format_local

logger = logging.getLogger(__name__)


def _schedule_fields(appointment: Appointment) -> dict:
    return {
        "employee_name": appointment.employee.user.full_name,
        "scheduled_date": format_local(appointment.starts_at, "%d/%m/%Y"),
        "scheduled_time": (
            f"{format_local(appointment.starts_at, '%H:%M')} - "
            f"{format_local(appointment.ends_at, '%H:%M')}"
        ),
        "services": [line.service.nombre for line in appointment.services if line.service],
    }


class AppointmentNotifier:
    """Notification fan-out for appointment events"""

    def __init__(self, db: Session):
        self.db = db

    def _save_in_app(self, rows: list[Notification], notification_type: str) -> bool:
        try:
            self.db.add_all(rows)
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save {notification_type} in-app notifications: {e}")
            return False

    async def _send_email(self, notification_type: str, to: Optional[str], email_func, **kwargs) -> dict:
        result = {"email_sent": False, "email_error": None}
        if not to:
            logger.debug(f"⚠️ No email address for {notification_type} notification")
            return result
        try:
            logger.info(f"📧 Sending {notification_type} email to {to}")
            await email_func(to=to, **kwargs)
            result["email_sent"] = True
        except EmailNotConfiguredError as e:
            result["email_error"] = str(e)
            logger.warning(f"⚠️ {notification_type} email to {to} skipped: {e}")
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"❌ Failed to send {notification_type} email to {to}: {e}")
        return result

    async def appointment_booked(self, appointment: Appointment) -> dict:
        """Receipt to the client, heads-up to the employee"""
        client_user = appointment.client.user
        employee_user = appointment.employee.user
        fields = _schedule_fields(appointment)
        when = f"{fields['scheduled_date']} {fields['scheduled_time']}"

        saved = self._save_in_app(
            [
                Notification(
                    usuario_id=client_user.id,
                    cita_id=appointment.id,
                    tipo="confirmacion",
                    titulo="Reservación recibida",
                    mensaje=f"Tu cita con {fields['employee_name']} el {when} está pendiente de confirmación.",
                ),
                Notification(
                    usuario_id=employee_user.id,
                    cita_id=appointment.id,
                    tipo="nueva_cita",
                    titulo="Nueva cita",
                    mensaje=f"{client_user.full_name} reservó una cita el {when}.",
                ),
            ],
            "confirmacion",
        )

        result = await self._send_email(
            "confirmacion",
            client_user.email,
            send_appointment_booked_email,
            client_name=client_user.full_name,
            **fields,
        )
        result["in_app_saved"] = saved
        return result

    async def appointment_status_changed(self, appointment: Appointment, previous: str) -> dict:
        client_user = appointment.client.user
        employee_user = appointment.employee.user
        fields = _schedule_fields(appointment)
        cancelled = appointment.status == AppointmentStatus.CANCELLED.value
        notification_type = "cancelacion" if cancelled else "cambio_estado"

        rows = [
            Notification(
                usuario_id=client_user.id,
                cita_id=appointment.id,
                tipo=notification_type,
                titulo=f"Cita {appointment.status}",
                mensaje=(
                    f"Tu cita del {fields['scheduled_date']} ({fields['scheduled_time']}) "
                    f"pasó de {previous} a {appointment.status}."
                ),
            )
        ]
        # The employee hears about cancellations made by the client
        if cancelled and appointment.cancelled_by == client_user.id:
            rows.append(
                Notification(
                    usuario_id=employee_user.id,
                    cita_id=appointment.id,
                    tipo="cancelacion",
                    titulo="Cita cancelada por el cliente",
                    mensaje=(
                        f"{client_user.full_name} canceló su cita del "
                        f"{fields['scheduled_date']} ({fields['scheduled_time']})."
                    ),
                )
            )
        saved = self._save_in_app(rows, notification_type)

        result = await self._send_email(
            notification_type,
            client_user.email,
            send_appointment_status_email,
            client_name=client_user.full_name,
            status=appointment.status,
            reason=appointment.cancellation_reason if cancelled else None,
            **fields,
        )
        result["in_app_saved"] = saved
        return result

    async def appointment_reminder(self, appointment: Appointment) -> dict:
        client_user = appointment.client.user
        fields = _schedule_fields(appointment)

        saved = self._save_in_app(
            [
                Notification(
                    usuario_id=client_user.id,
                    cita_id=appointment.id,
                    tipo="recordatorio",
                    titulo="Recordatorio de cita",
                    mensaje=(
                        f"Te esperamos el {fields['scheduled_date']} ({fields['scheduled_time']}) "
                        f"con {fields['employee_name']}."
                    ),
                )
            ],
            "recordatorio",
        )

        result = await self._send_email(
            "recordatorio",
            client_user.email,
            send_appointment_reminder_email,
            client_name=client_user.full_name,
            **fields,
        )
        result["in_app_saved"] = saved
        return result
