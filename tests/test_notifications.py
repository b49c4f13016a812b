"""
Tests for appointment notifications and email templates.
"""

from datetime import time, timedelta

import pytest

from salon.email_service import EmailNotConfiguredError, compile_mjml_to_html, send_email
from salon.email_templates import appointment_booked_template, appointment_status_template
from salon.models import Appointment, AppointmentStatus, Notification
from salon.services import notification_service
from salon.services.notification_service import AppointmentNotifier
from salon.shared.business_time import local_datetime

from conftest import upcoming


@pytest.fixture
def appointment(db, seed):
    starts_at = local_datetime(upcoming(0), time(9, 15))
    record = Appointment(
        cliente_id=seed.client_id,
        empleado_id=seed.stylist_id,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(minutes=45),
        status=AppointmentStatus.PENDING.value,
    )
    db.add(record)
    db.commit()
    return record


class TestAppointmentNotifier:
    """Test the in-app and email fan-out."""

    @pytest.mark.asyncio
    async def test_booking_notifies_client_and_employee(self, db, seed, appointment):
        result = await AppointmentNotifier(db).appointment_booked(appointment)

        assert result["in_app_saved"] is True
        assert result["email_sent"] is False
        assert "not configured" in result["email_error"]

        rows = db.query(Notification).filter(Notification.cita_id == appointment.id).all()
        assert {(n.usuario_id, n.tipo) for n in rows} == {
            (seed.client_user_id, "confirmacion"),
            (seed.stylist_user_id, "nueva_cita"),
        }

    @pytest.mark.asyncio
    async def test_email_sent_with_schedule(self, db, seed, appointment, monkeypatch):
        sent = []

        async def fake_send(**kwargs):
            sent.append(kwargs)
            return {"id": "email_123"}

        monkeypatch.setattr(notification_service, "send_appointment_booked_email", fake_send)
        result = await AppointmentNotifier(db).appointment_booked(appointment)

        assert result["email_sent"] is True
        assert sent[0]["to"] == "client@example.com"
        assert sent[0]["scheduled_time"] == "09:15 - 10:00"
        assert sent[0]["employee_name"] == "Sofía Estilista"

    @pytest.mark.asyncio
    async def test_email_failure_is_reported_not_raised(self, db, seed, appointment, monkeypatch):
        async def failing_send(**kwargs):
            raise RuntimeError("provider timeout")

        monkeypatch.setattr(notification_service, "send_appointment_reminder_email", failing_send)
        result = await AppointmentNotifier(db).appointment_reminder(appointment)

        assert result["email_sent"] is False
        assert result["email_error"] == "provider timeout"
        assert result["in_app_saved"] is True

    @pytest.mark.asyncio
    async def test_client_cancellation_notifies_employee(self, db, seed, appointment):
        appointment.status = AppointmentStatus.CANCELLED.value
        appointment.cancelled_by = seed.client_user_id
        db.commit()

        await AppointmentNotifier(db).appointment_status_changed(
            appointment, AppointmentStatus.PENDING.value
        )
        recipients = {
            n.usuario_id
            for n in db.query(Notification).filter(Notification.tipo == "cancelacion")
        }
        assert recipients == {seed.client_user_id, seed.stylist_user_id}

    @pytest.mark.asyncio
    async def test_confirmation_notifies_client_only(self, db, seed, appointment):
        appointment.status = AppointmentStatus.CONFIRMED.value
        db.commit()

        await AppointmentNotifier(db).appointment_status_changed(
            appointment, AppointmentStatus.PENDING.value
        )
        rows = db.query(Notification).all()
        assert [(n.usuario_id, n.tipo) for n in rows] == [(seed.client_user_id, "cambio_estado")]


class TestEmail:
    @pytest.mark.asyncio
    async def test_send_without_api_key(self):
        with pytest.raises(EmailNotConfiguredError):
            await send_email("client@example.com", "Asunto", "<mjml></mjml>")

    def test_template_escapes_user_content(self):
        mjml = appointment_booked_template(
            client_name="<script>alert(1)</script>",
            employee_name="Sofía",
            scheduled_date="07/01/2030",
            scheduled_time="09:15 - 10:00",
            services=["Corte & Lavado"],
        )
        assert "<script>" not in mjml
        assert "&lt;script&gt;" in mjml
        assert "Corte &amp; Lavado" in mjml

    def test_template_compiles_to_html(self):
        mjml = appointment_booked_template(
            client_name="Carla",
            employee_name="Sofía",
            scheduled_date="07/01/2030",
            scheduled_time="09:15 - 10:00",
            services=["Corte"],
        )
        html = compile_mjml_to_html(mjml)
        assert "<html" in html
        assert "<mjml>" not in html
        assert "Carla" in html

    def test_status_template_includes_reason(self):
        mjml = appointment_status_template(
            client_name="Carla",
            status="Cancelada",
            employee_name="Sofía",
            scheduled_date="07/01/2030",
            scheduled_time="09:15 - 10:00",
            services=[],
            reason="Empleado enfermo",
        )
        assert "Motivo: Empleado enfermo" in mjml
        assert "Tu cita ahora está: Cancelada" in mjml
