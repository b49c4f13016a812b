"""
Appointment status transitions.

    Pendiente  -> Confirmada | Cancelada | No Asistió
    Confirmada -> Completada | Cancelada | No Asistió

Completada, Cancelada and No Asistió are terminal.
"""

from ...errors import ConflictError
from ...models import AppointmentStatus

ALLOWED_TRANSITIONS: dict[str, frozenset] = {
    AppointmentStatus.PENDING.value: frozenset(
        {
            AppointmentStatus.CONFIRMED.value,
            AppointmentStatus.CANCELLED.value,
            AppointmentStatus.NO_SHOW.value,
        }
    ),
    AppointmentStatus.CONFIRMED.value: frozenset(
        {
            AppointmentStatus.COMPLETED.value,
            AppointmentStatus.CANCELLED.value,
            AppointmentStatus.NO_SHOW.value,
        }
    ),
    AppointmentStatus.COMPLETED.value: frozenset(),
    AppointmentStatus.CANCELLED.value: frozenset(),
    AppointmentStatus.NO_SHOW.value: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise ConflictError(
            f"No se puede cambiar una cita de '{current}' a '{target}'",
            reason=ConflictError.INVALID_TRANSITION,
        )
