"""
Domain error taxonomy.

Every error raised by the registration, payment and retention services is a
StandardHTTPException subclass carrying a stable ``kind`` string, so the
global exception handler can render the standard response envelope with an
``error`` field clients can switch on.
"""

from typing import Any

from fastapi import status

from app.core.responses import StandardHTTPException


class DomainError(StandardHTTPException):
    """Base class for errors with a stable, machine-readable kind."""

    kind: str = "Error"
    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, data: Any = None, status_code: int | None = None):
        super().__init__(
            status_code=status_code or self.default_status,
            message=message,
            success=False,
            data=data,
        )


class InvalidInput(DomainError):
    kind = "InvalidInput"
    default_status = status.HTTP_400_BAD_REQUEST


class Unauthorized(DomainError):
    kind = "Unauthorized"
    default_status = status.HTTP_401_UNAUTHORIZED


class Forbidden(DomainError):
    kind = "Forbidden"
    default_status = status.HTTP_403_FORBIDDEN


class NotFound(DomainError):
    kind = "NotFound"
    default_status = status.HTTP_404_NOT_FOUND


class Conflict(DomainError):
    kind = "Conflict"
    default_status = status.HTTP_409_CONFLICT


class InvalidStateTransition(DomainError):
    """Raised when a registration status change is not allowed."""

    kind = "InvalidStateTransition"
    default_status = status.HTTP_409_CONFLICT


class InvalidSignature(DomainError):
    """
    Checkout signature did not match. Verification endpoints answer with this
    kind (and `data.confirmed = false`) instead of raising, since the failed
    attempt is recorded.
    """

    kind = "InvalidSignature"
    default_status = status.HTTP_400_BAD_REQUEST


class UpstreamError(DomainError):
    """Payment gateway or file host failed or timed out."""

    kind = "UpstreamError"
    default_status = status.HTTP_502_BAD_GATEWAY


class PersistenceError(DomainError):
    kind = "PersistenceError"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_kind(exc: Exception) -> str | None:
    """Return the stable kind of an exception, if it has one."""
    return getattr(exc, "kind", None)
