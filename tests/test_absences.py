"""
Tests for employee absences: registration, approval, cancellation and their
effect on availability.
"""

from datetime import timedelta

import pytest

from salon.models import AbsenceReason, AbsenceStatus

from conftest import upcoming


def _payload(day, **overrides):
    payload = {
        "fecha_inicio": f"{day.isoformat()}T00:00:00",
        "fecha_fin": f"{(day + timedelta(days=1)).isoformat()}T00:00:00",
        "motivo": AbsenceReason.VACATION.value,
        "descripcion": "Vacaciones familiares",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def monday():
    return upcoming(0)


@pytest.fixture
def register(client, as_user):
    def run(user_id, payload):
        response = client.post("/ausencias", json=payload, headers=as_user(user_id))
        assert response.status_code == 201, response.json()
        return response.json()["data"]

    return run


def _availability(client, seed, day):
    response = client.get(
        "/reservacion/horarios", params={"empleadoId": seed.stylist_id, "fecha": day.isoformat()}
    )
    assert response.status_code == 200
    return response.json()


class TestCreateAbsence:
    """Test POST /ausencias."""

    def test_employee_registers_pending_absence(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias", json=_payload(monday), headers=as_user(seed.stylist_user_id)
        )
        data = response.json()["data"]
        assert response.status_code == 201
        assert data["empleado_id"] == seed.stylist_id
        assert data["estado"] == AbsenceStatus.PENDING.value
        assert data["aprobada"] is False
        assert data["fecha_inicio"] == f"{monday.isoformat()}T00:00:00"
        assert data["dias_ausencia"] == 1

    def test_pending_absence_does_not_block(self, client, seed, register, monday):
        register(seed.stylist_user_id, _payload(monday))
        assert _availability(client, seed, monday)["count"] == 16

    def test_multi_day_count(self, client, seed, register, monday):
        data = register(
            seed.admin_id,
            _payload(
                monday,
                empleadoId=seed.stylist_id,
                fecha_inicio=f"{monday.isoformat()}T09:00:00",
                fecha_fin=f"{(monday + timedelta(days=2)).isoformat()}T11:00:00",
            ),
        )
        assert data["dias_ausencia"] == 3

    def test_employee_cannot_self_approve(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias",
            json=_payload(monday, aprobada=True),
            headers=as_user(seed.stylist_user_id),
        )
        assert response.status_code == 403

    def test_employee_cannot_register_for_colleague(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias",
            json=_payload(monday, empleadoId=seed.barber_id),
            headers=as_user(seed.stylist_user_id),
        )
        assert response.status_code == 403

    def test_manager_must_name_employee(self, client, seed, as_user, monday):
        response = client.post("/ausencias", json=_payload(monday), headers=as_user(seed.admin_id))
        assert response.status_code == 400
        assert response.json()["reason"] == "employee_required"

    def test_manager_unknown_employee(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias", json=_payload(monday, empleadoId=9999), headers=as_user(seed.admin_id)
        )
        assert response.status_code == 404

    def test_inverted_range_rejected(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias",
            json=_payload(
                monday,
                fecha_inicio=f"{monday.isoformat()}T12:00:00",
                fecha_fin=f"{monday.isoformat()}T09:00:00",
            ),
            headers=as_user(seed.stylist_user_id),
        )
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_request"

    def test_unknown_reason_rejected(self, client, seed, as_user, monday):
        response = client.post(
            "/ausencias", json=_payload(monday, motivo="Capacitación"), headers=as_user(seed.stylist_user_id)
        )
        assert response.status_code == 400

    def test_client_forbidden(self, client, seed, as_user, monday):
        response = client.post("/ausencias", json=_payload(monday), headers=as_user(seed.client_user_id))
        assert response.status_code == 403

    def test_preapproved_absence_blocks_day(self, client, seed, register, monday):
        register(seed.owner_id, _payload(monday, empleadoId=seed.stylist_id, aprobada=True))

        body = _availability(client, seed, monday)
        assert body["count"] == 0
        assert body["empleadoAusente"] is True
        assert _availability(client, seed, monday + timedelta(days=1))["count"] == 16


class TestApproveAbsence:
    """Test PATCH /ausencias/{id}/aprobar."""

    def test_owner_approves(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))

        response = client.patch(f"/ausencias/{absence['id']}/aprobar", headers=as_user(seed.owner_id))
        assert response.status_code == 200
        assert response.json()["data"]["aprobada"] is True
        assert _availability(client, seed, monday)["empleadoAusente"] is True

    def test_approve_twice(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))
        client.patch(f"/ausencias/{absence['id']}/aprobar", headers=as_user(seed.admin_id))

        response = client.patch(f"/ausencias/{absence['id']}/aprobar", headers=as_user(seed.admin_id))
        assert response.status_code == 409
        assert response.json()["reason"] == "invalid_transition"

    def test_employee_cannot_approve(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))
        response = client.patch(
            f"/ausencias/{absence['id']}/aprobar", headers=as_user(seed.stylist_user_id)
        )
        assert response.status_code == 403

    def test_approval_keeps_existing_appointments(self, client, seed, as_user, register, monday):
        booked = client.post(
            "/reservacion/procesar",
            json={
                "empleadoId": seed.stylist_id,
                "servicios": [{"id": seed.corte_id}],
                "fecha": monday.isoformat(),
                "horario": {"inicio": "09:15"},
                "total": 10.0,
            },
            headers=as_user(seed.client_user_id),
        )
        assert booked.status_code == 200
        absence = register(seed.stylist_user_id, _payload(monday))

        response = client.patch(f"/ausencias/{absence['id']}/aprobar", headers=as_user(seed.admin_id))
        assert response.status_code == 200

        citas = client.get("/reservacion/mis-citas", headers=as_user(seed.client_user_id)).json()
        assert citas["citas"][0]["estado_nombre"] == "Pendiente"

    def test_unknown_absence(self, client, seed, as_user):
        response = client.patch("/ausencias/9999/aprobar", headers=as_user(seed.admin_id))
        assert response.status_code == 404
        assert response.json()["reason"] == "absence_not_found"


class TestCancelAbsence:
    """Test PATCH /ausencias/{id}/cancelar."""

    def test_owner_of_absence_cancels(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))
        response = client.patch(
            f"/ausencias/{absence['id']}/cancelar", headers=as_user(seed.stylist_user_id)
        )
        assert response.status_code == 200
        assert response.json()["data"]["estado"] == AbsenceStatus.CANCELLED.value

    def test_cancelling_approved_absence_frees_day(self, client, seed, as_user, register, monday):
        absence = register(seed.admin_id, _payload(monday, empleadoId=seed.stylist_id, aprobada=True))
        assert _availability(client, seed, monday)["count"] == 0

        client.patch(f"/ausencias/{absence['id']}/cancelar", headers=as_user(seed.admin_id))
        assert _availability(client, seed, monday)["count"] == 16

    def test_cancel_twice(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))
        headers = as_user(seed.stylist_user_id)
        client.patch(f"/ausencias/{absence['id']}/cancelar", headers=headers)

        response = client.patch(f"/ausencias/{absence['id']}/cancelar", headers=headers)
        assert response.status_code == 409

    def test_colleague_cannot_cancel(self, client, seed, as_user, register, monday):
        absence = register(seed.stylist_user_id, _payload(monday))
        response = client.patch(
            f"/ausencias/{absence['id']}/cancelar", headers=as_user(seed.barber_user_id)
        )
        assert response.status_code == 403


class TestListAbsences:
    """Test GET /ausencias."""

    def test_employee_sees_only_own(self, client, seed, as_user, register, monday):
        own = register(seed.stylist_user_id, _payload(monday))
        register(seed.barber_user_id, _payload(monday))

        response = client.get("/ausencias", headers=as_user(seed.stylist_user_id))
        body = response.json()
        assert response.status_code == 200
        assert [a["id"] for a in body["ausencias"]] == [own["id"]]

    def test_manager_filters(self, client, seed, as_user, register, monday):
        register(seed.stylist_user_id, _payload(monday))
        illness = register(
            seed.barber_user_id,
            _payload(monday + timedelta(days=7), motivo=AbsenceReason.ILLNESS.value),
        )

        by_reason = client.get(
            "/ausencias", params={"motivo": AbsenceReason.ILLNESS.value}, headers=as_user(seed.admin_id)
        )
        assert [a["id"] for a in by_reason.json()["ausencias"]] == [illness["id"]]

        by_range = client.get(
            "/ausencias",
            params={"desde": monday.isoformat(), "hasta": monday.isoformat()},
            headers=as_user(seed.admin_id),
        )
        assert by_range.json()["count"] == 1

    def test_sort_descending(self, client, seed, as_user, register, monday):
        first = register(seed.stylist_user_id, _payload(monday))
        second = register(seed.stylist_user_id, _payload(monday + timedelta(days=3)))

        response = client.get(
            "/ausencias",
            params={"orden": "fecha_inicio", "direccion": "DESC"},
            headers=as_user(seed.admin_id),
        )
        assert [a["id"] for a in response.json()["ausencias"]] == [second["id"], first["id"]]

    def test_inverted_range(self, client, seed, as_user, monday):
        response = client.get(
            "/ausencias",
            params={"desde": (monday + timedelta(days=1)).isoformat(), "hasta": monday.isoformat()},
            headers=as_user(seed.admin_id),
        )
        assert response.status_code == 400
        assert response.json()["reason"] == "invalid_range"

    def test_unknown_sort_field(self, client, seed, as_user):
        response = client.get("/ausencias", params={"orden": "empleado_id"}, headers=as_user(seed.admin_id))
        assert response.status_code == 400
