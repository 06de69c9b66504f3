"""API key middleware for the read API.

When an API key is configured, every /api/* request must carry it in the
X-API-Key header. Keys are compared in constant time. Responses get a small
set of security headers either way.
"""

from __future__ import annotations

__all__ = ["ApiKeyMiddleware", "validate_api_key"]

import hmac

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from eventscope.api.errors import ErrorCode
from eventscope.constants import API_KEY_HEADER
from eventscope.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()


def validate_api_key(provided: str, expected: str) -> bool:
    """Compare API keys in constant time."""
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Rejects /api/* requests without the configured API key."""

    def __init__(self, app: ASGIApp, api_key: str | None = None) -> None:
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.api_key and request.url.path.startswith("/api/"):
            provided = request.headers.get(API_KEY_HEADER, "")
            if not provided or not validate_api_key(provided, self.api_key):
                logger.warning(
                    {
                        "event": "unauthorized_request_rejected",
                        "message": f"Rejected request without valid API key: {request.method} {request.url.path}",
                        "component": "api_security",
                        "details": {"method": request.method, "path": str(request.url.path)},
                    }
                )
                return JSONResponse(
                    status_code=401,
                    content={
                        "detail": {
                            "code": ErrorCode.AUTH_REQUIRED.value,
                            "message": f"Missing or invalid {API_KEY_HEADER} header",
                        }
                    },
                )

        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"
        return response
