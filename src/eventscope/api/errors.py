"""Structured API error handling.

This module provides:
- ErrorCode enum with domain-grouped error codes
- APIError exception class for structured error responses
- Global exception handlers for consistent error formatting

Usage:
    from eventscope.api.errors import APIError, ErrorCode

    raise APIError(
        status_code=404,
        code=ErrorCode.EVENT_NOT_FOUND,
        message="Event not found",
        details={"event_id": "abc123"},
    )

Response format:
    {
        "detail": {
            "code": "EVENT_NOT_FOUND",
            "message": "Event not found",
            "details": {"event_id": "abc123"}
        }
    }
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ErrorCode",
    "api_error_handler",
    "http_exception_handler",
    "query_error_handler",
    "validation_error_handler",
]

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventscope.exceptions import QueryError
from eventscope.telemetry.system.system_logger import get_system_logger


class ErrorCode(str, Enum):
    """API error codes for programmatic handling.

    Codes are namespaced by domain:
    - AUTH_*: API key errors
    - EVENT_*: Event lookup errors
    - QUERY_*/STORE_*: Read path failures
    - VALIDATION_*/INVALID_*: Input validation errors
    - INTERNAL_*: Internal server errors
    """

    # Authentication errors (401)
    AUTH_REQUIRED = "AUTH_REQUIRED"

    # Resource errors (404)
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"  # Generic 404 for unmapped exceptions

    # Validation errors (400, 422)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PARAMETER = "INVALID_PARAMETER"

    # Read path errors (500, 503)
    QUERY_FAILED = "QUERY_FAILED"
    CORRUPT_ROW = "CORRUPT_ROW"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    # Internal errors (500, 503)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


# QueryError codes that map onto HTTP statuses other than 500
_QUERY_ERROR_STATUS: dict[str, int] = {
    ErrorCode.INVALID_PARAMETER.value: 400,
    ErrorCode.STORE_UNAVAILABLE.value: 503,
}


class APIError(HTTPException):
    """Structured API error with error code.

    Attributes:
        status_code: HTTP status code.
        code: Error code from ErrorCode enum.
        error_message: Human-readable error message.
        error_details: Optional contextual details.
    """

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.error_message = message
        self.error_details = details

        detail: dict[str, Any] = {
            "code": code.value,
            "message": message,
        }
        if details:
            detail["details"] = details

        super().__init__(status_code=status_code, detail=detail)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    """Map QueryError from the repository onto a structured response.

    The service keeps running; store failures are logged to the system log.

    Args:
        request: FastAPI request object.
        exc: QueryError raised by the repository.

    Returns:
        JSONResponse with the error code carried by the exception.
    """
    status_code = _QUERY_ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        get_system_logger().error(
            {
                "event": "query_failed",
                "code": exc.code,
                "path": str(request.url.path),
                "error": exc.message,
                "message": f"Query failed: {exc.message}",
            }
        )

    detail: dict[str, Any] = {"code": exc.code, "message": exc.message}
    if exc.details:
        detail["details"] = exc.details
    return JSONResponse(status_code=status_code, content={"detail": detail})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors with structured response.

    Args:
        request: FastAPI request object.
        exc: RequestValidationError from Pydantic.

    Returns:
        JSONResponse with structured error detail including validation_errors.
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}

    loc = first_error.get("loc", [])
    msg = first_error.get("msg", "Validation error")

    if len(errors) == 1:
        field_parts = [str(part) for part in loc if part not in ("body", "query", "path")]
        field_name = ".".join(field_parts)
        message = f"{field_name}: {msg}" if field_name else msg
    else:
        message = f"{len(errors)} validation errors"

    detail: dict[str, Any] = {
        "code": ErrorCode.VALIDATION_ERROR.value,
        "message": message,
        "validation_errors": [
            {
                "loc": list(e.get("loc", [])),
                "msg": e.get("msg", ""),
                "type": e.get("type", ""),
            }
            for e in errors
        ],
    }

    return JSONResponse(
        status_code=422,
        content={"detail": detail},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle standard HTTPException, wrapping plain string details."""
    if isinstance(exc.detail, dict) and "code" in exc.detail:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    code = _status_to_error_code(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": code.value, "message": message}},
    )


def _status_to_error_code(status_code: int) -> ErrorCode:
    mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTH_REQUIRED,
        404: ErrorCode.NOT_FOUND,
        500: ErrorCode.INTERNAL_ERROR,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
