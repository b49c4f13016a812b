"""
Domain error taxonomy.

Services raise these; main.py renders them into the JSON error envelope
`{"success": false, "error": code, "reason": reason, "message": message}`.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for errors that map to an HTTP response"""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "reason": self.reason,
            "message": self.message,
        }


class ValidationError(BookingError):
    """Missing or malformed input (400)"""

    status_code = 400
    code = "validation_error"


class PermissionDeniedError(BookingError):
    status_code = 403
    code = "forbidden"


class NotFoundError(BookingError):
    """Referenced employee, service, appointment or absence does not exist (404)"""

    status_code = 404
    code = "not_found"


class ConflictError(BookingError):
    """
    Temporal conflict or illegal state change (409).

    `reason` is machine readable: one of the constants below.
    """

    status_code = 409
    code = "conflict"

    APPOINTMENT_OVERLAP = "appointment_overlap"
    EMPLOYEE_ABSENT = "employee_absent"
    INVALID_TRANSITION = "invalid_transition"


class InternalError(BookingError):
    """Storage or unexpected failure (500); the caller must retry from scratch"""

    status_code = 500
    code = "internal_error"
