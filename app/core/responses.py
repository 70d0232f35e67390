"""
Standardized API response utilities.

Every endpoint answers with the same envelope::

    {"success": bool, "status_code": int, "message": str, "data": Any | None}

Errors raised from domain exceptions also carry ``"error"``, the stable
error kind (e.g. ``"Conflict"``, ``"InvalidSignature"``) that clients switch on.
"""

from typing import Any

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class StandardHTTPException(HTTPException):
    """
    HTTPException rendered in the standard envelope by the global handler.

    Domain errors in ``app.core.errors`` subclass this; routes rarely raise it
    directly.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        success: bool = False,
        data: Any = None,
    ):
        self.status_code = status_code
        self.message = message
        self.success = success
        self.data = data
        # detail keeps FastAPI's default handler usable
        super().__init__(status_code=status_code, detail=message)


def _envelope(
    status_code: int, success: bool, message: str, data: Any, error: str | None = None
) -> JSONResponse:
    content = {
        "success": success,
        "status_code": status_code,
        "message": message,
        "data": jsonable_encoder(data),
    }
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


def success_response(
    status_code: int = status.HTTP_200_OK,
    message: str = "Operation successful",
    data: Any = None,
) -> JSONResponse:
    """
    Successful envelope. ``data`` is passed through ``jsonable_encoder`` so
    Decimals, dates and enums serialize cleanly.

    Example:
        return success_response(
            message="Registrations retrieved successfully",
            data={"registrations": [...]},
        )
    """
    return _envelope(status_code, True, message, data)


def created_response(
    message: str = "Resource created successfully",
    data: Any = None,
) -> JSONResponse:
    return _envelope(status.HTTP_201_CREATED, True, message, data)


def error_response(
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    message: str = "An error occurred",
    data: Any = None,
    error: str | None = None,
) -> JSONResponse:
    """
    Error envelope.

    Args:
        status_code: HTTP error status (400, 401, 403, 404, 409, 502, ...)
        message: Human-readable message
        data: Optional details, e.g. ``{"confirmed": false}`` for a bad signature
        error: Stable error kind
    """
    return _envelope(status_code, False, message, data, error)
