"""
Tests for BookingService: atomic creation, validation and conflict detection.
"""

import threading
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

import pytest

from salon.domain.scheduling.availability_service import AvailabilityService
from salon.domain.scheduling.booking_service import BookingService
from salon.errors import ConflictError, NotFoundError, ValidationError
from salon.models import (
    Absence,
    AbsenceReason,
    AbsenceStatus,
    Appointment,
    AppointmentService,
    AppointmentStatus,
    Client,
    Employee,
    Payment,
    User,
)
from salon.shared.business_time import local_datetime, to_local

from conftest import upcoming


class RecordingNotifier:
    def __init__(self, fail=False):
        self.booked = []
        self.fail = fail

    async def appointment_booked(self, appointment):
        if self.fail:
            raise RuntimeError("mail server down")
        self.booked.append(appointment.id)


class TestCreateAppointment:
    """Test the happy path of a booking."""

    def test_books_pending_appointment(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        appointment = BookingService(db).create_appointment(user, booking_request())

        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.cliente_id == seed.client_id
        assert appointment.empleado_id == seed.stylist_id
        assert to_local(appointment.starts_at).strftime("%H:%M") == "09:15"
        assert to_local(appointment.ends_at).strftime("%H:%M") == "09:45"

    def test_duration_sums_services(self, db, seed, booking_request):
        """30 + 15 minutes at 09:15 ends at 10:00."""
        user = db.get(User, seed.client_user_id)
        request = booking_request(
            servicios=[{"id": seed.corte_id}, {"id": seed.lavado_id}], total=15.0
        )
        appointment = BookingService(db).create_appointment(user, request)

        assert to_local(appointment.ends_at).strftime("%H:%M") == "10:00"

        result = AvailabilityService(db).get_available_slots(seed.stylist_id, request.fecha)
        starts = [slot.inicio for slot in result.slots]
        assert "09:15" not in starts
        assert "09:45" not in starts
        assert "10:15" in starts

    def test_duration_override_and_quantity(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        request = booking_request(
            servicios=[{"id": seed.corte_id, "duracion": 20, "cantidad": 2}], total=20.0
        )
        appointment = BookingService(db).create_appointment(user, request)
        assert appointment.ends_at - appointment.starts_at == timedelta(minutes=40)

    def test_service_lines_and_payment(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        request = booking_request(
            servicios=[{"id": seed.corte_id}, {"id": seed.lavado_id, "cantidad": 2}], total=20.0
        )
        appointment = BookingService(db).create_appointment(user, request)

        lines = (
            db.query(AppointmentService)
            .filter(AppointmentService.cita_id == appointment.id)
            .order_by(AppointmentService.servicio_id)
            .all()
        )
        assert [(line.servicio_id, line.cantidad) for line in lines] == [
            (seed.corte_id, 1),
            (seed.lavado_id, 2),
        ]
        assert lines[0].precio_aplicado == Decimal("10.00")
        assert lines[1].precio_aplicado == Decimal("5.00")

        payment = db.query(Payment).filter(Payment.cita_id == appointment.id).one()
        assert payment.monto_total == Decimal("20.00")

    def test_creates_client_for_first_booking(self, db, seed, booking_request):
        user = db.get(User, seed.newcomer_id)
        appointment = BookingService(db).create_appointment(user, booking_request())

        client = db.query(Client).filter(Client.usuario_id == seed.newcomer_id).one()
        assert appointment.cliente_id == client.id

    def test_touching_bookings_allowed(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        service = BookingService(db)
        service.create_appointment(user, booking_request())
        second = service.create_appointment(user, booking_request(horario={"inicio": "09:45"}))
        assert second.id is not None


class TestBookingValidation:
    """Test requests rejected before anything is written."""

    def test_invalid_slot(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        with pytest.raises(ValidationError) as exc_info:
            BookingService(db).create_appointment(user, booking_request(horario={"inicio": "13:00"}))
        assert exc_info.value.reason == "invalid_slot"

    def test_sunday_uses_its_own_template(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        sunday = upcoming(6).isoformat()
        with pytest.raises(ValidationError):
            BookingService(db).create_appointment(user, booking_request(fecha=sunday))

        appointment = BookingService(db).create_appointment(
            user, booking_request(fecha=sunday, horario={"inicio": "09:30"})
        )
        assert to_local(appointment.starts_at).strftime("%H:%M") == "09:30"

    def test_past_date(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        request = booking_request()
        after_slot = local_datetime(request.fecha, time(12, 0)).astimezone(timezone.utc)

        service = BookingService(db, clock=lambda: after_slot)
        with pytest.raises(ValidationError) as exc_info:
            service.create_appointment(user, request)
        assert exc_info.value.reason == "past_date"

    def test_unknown_service(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        with pytest.raises(NotFoundError) as exc_info:
            BookingService(db).create_appointment(
                user, booking_request(servicios=[{"id": seed.corte_id}, {"id": 9999}])
            )
        assert exc_info.value.reason == "service_not_found"
        assert db.query(Appointment).count() == 0

    def test_inactive_service(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        with pytest.raises(NotFoundError):
            BookingService(db).create_appointment(
                user, booking_request(servicios=[{"id": seed.retirado_id}])
            )

    def test_unknown_employee(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        with pytest.raises(NotFoundError) as exc_info:
            BookingService(db).create_appointment(user, booking_request(empleadoId=9999))
        assert exc_info.value.reason == "employee_not_found"

    def test_inactive_employee(self, db, seed, booking_request):
        db.get(Employee, seed.stylist_id).activo = False
        db.commit()
        user = db.get(User, seed.client_user_id)
        with pytest.raises(NotFoundError):
            BookingService(db).create_appointment(user, booking_request())


class TestBookingConflicts:
    """Test conflict detection against persisted appointments and absences."""

    def test_overlapping_booking_rejected(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        service = BookingService(db)
        service.create_appointment(
            user, booking_request(servicios=[{"id": seed.corte_id}, {"id": seed.lavado_id}])
        )

        with pytest.raises(ConflictError) as exc_info:
            service.create_appointment(user, booking_request(horario={"inicio": "09:45"}))
        assert exc_info.value.reason == ConflictError.APPOINTMENT_OVERLAP
        assert db.query(Appointment).count() == 1
        assert db.query(Payment).count() == 1

    def test_cancelled_slot_can_be_rebooked(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        service = BookingService(db)
        first = service.create_appointment(user, booking_request())
        first.status = AppointmentStatus.CANCELLED.value
        db.commit()

        second = service.create_appointment(user, booking_request())
        assert second.id != first.id

    def test_approved_absence_blocks_booking(self, db, seed, booking_request):
        request = booking_request()
        db.add(
            Absence(
                empleado_id=seed.stylist_id,
                starts_at=local_datetime(request.fecha, time(9, 0)),
                ends_at=local_datetime(request.fecha, time(12, 0)),
                motivo=AbsenceReason.ILLNESS.value,
                status=AbsenceStatus.APPROVED.value,
            )
        )
        db.commit()

        user = db.get(User, seed.client_user_id)
        with pytest.raises(ConflictError) as exc_info:
            BookingService(db).create_appointment(user, request)
        assert exc_info.value.reason == ConflictError.EMPLOYEE_ABSENT

    def test_concurrent_bookings_for_same_slot(self, session_factory, seed, booking_request):
        """Two clients racing for the same slot: exactly one wins."""
        request = booking_request()
        barrier = threading.Barrier(2)
        results = []
        lock = threading.Lock()

        def attempt(user_id):
            session = session_factory()
            try:
                barrier.wait()
                user = session.get(User, user_id)
                appointment = BookingService(session).create_appointment(user, request)
                outcome = ("ok", appointment.id)
            except ConflictError as e:
                outcome = ("conflict", e.reason)
            except Exception as e:  # surfaced by the assertions below
                outcome = ("error", repr(e))
            finally:
                session.close()
            with lock:
                results.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=(user_id,))
            for user_id in (seed.client_user_id, seed.newcomer_id)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        outcomes = sorted(kind for kind, _ in results)
        assert outcomes == ["conflict", "ok"], results
        assert ("conflict", ConflictError.APPOINTMENT_OVERLAP) in results

        session = session_factory()
        try:
            assert session.query(Appointment).count() == 1
        finally:
            session.close()


class TestBook:
    """Test the async booking entry point and its notification step."""

    @pytest.mark.asyncio
    async def test_notifier_called(self, db, seed, booking_request):
        notifier = RecordingNotifier()
        user = db.get(User, seed.client_user_id)
        appointment = await BookingService(db, notifier=notifier).book(user, booking_request())
        assert notifier.booked == [appointment.id]

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_booking(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        appointment = await BookingService(db, notifier=RecordingNotifier(fail=True)).book(
            user, booking_request()
        )
        assert db.get(Appointment, appointment.id) is not None


class TestClientAppointments:
    def test_newest_first(self, db, seed, booking_request):
        user = db.get(User, seed.client_user_id)
        service = BookingService(db)
        early = service.create_appointment(user, booking_request())
        later = service.create_appointment(
            user, booking_request(fecha=(upcoming(0) + timedelta(days=1)).isoformat())
        )
        assert [a.id for a in service.get_client_appointments(user)] == [later.id, early.id]

    def test_never_booked(self, db, seed):
        user = db.get(User, seed.newcomer_id)
        assert BookingService(db).get_client_appointments(user) == []


def test_clock_defaults_to_utc_now(db):
    service = BookingService(db)
    assert abs(service.clock() - datetime.now(timezone.utc)) < timedelta(seconds=5)
