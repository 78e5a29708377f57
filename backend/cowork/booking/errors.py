"""Domain exceptions raised by the booking engine.

Each error carries a machine-readable ``code`` and a ``details`` dict naming the
rule that failed, so the API layer can render an actionable message instead of
a generic failure.
"""

from typing import Any

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class BookingError(Exception):
    """Base class for all booking engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "booking_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class ValidationError(BookingError):
    """Malformed input: missing fields, bad interval, amount mismatch."""

    status_code = HTTP_422_UNPROCESSABLE
    default_code = "validation_error"


class ConflictError(BookingError):
    """The candidate interval collides with another booking."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "booking_conflict"

    def __init__(self, rule: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.rule = rule  # "overlap" or "buffer"
        super().__init__(message, code=f"booking_conflict_{rule}", details={"rule": rule, **(details or {})})


class NotAvailableError(BookingError):
    """Property closed, date blacklisted, or outside the allowed time slots."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "not_available"

    def __init__(self, reason: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.reason = reason
        super().__init__(message, code=f"not_available_{reason}", details={"reason": reason, **(details or {})})


class InvalidTransitionError(BookingError):
    """A lifecycle operation was attempted from a status that forbids it."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_transition"

    def __init__(self, current_status: str, operation: str, message: str | None = None) -> None:
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            message or f"Cannot {operation.replace('_', ' ')} a booking in status '{current_status}'",
            details={"current_status": current_status, "operation": operation},
        )


class NotFoundError(BookingError):
    """Referenced property or booking does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"

    def __init__(self, resource: str, identifier: Any) -> None:
        self.resource = resource
        super().__init__(
            f"{resource.capitalize()} not found",
            code=f"{resource}_not_found",
            details={"resource": resource, "id": str(identifier)},
        )
