"""FastAPI server for the event read API.

Implements:
- Events API (/api/v1/events) - filtered, paginated events, counts, detail
- Attributes API (/api/v1/attributes) - attribute rows
- Stats API (/api/v1/stats) - pipeline counters

Security:
- Optional API key (X-API-Key) for /api/* endpoints
- Security response headers

Usage:
    The API is started by `eventscope serve`, which builds the pipeline
    runtime and hands its repository and counters to create_api_app().
"""

from __future__ import annotations

__all__ = ["create_api_app"]

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventscope.api.deps import StatsSource
from eventscope.config import AppConfig
from eventscope.exceptions import QueryError
from eventscope.query.repository import QueryRepository

from .errors import (
    APIError,
    api_error_handler,
    http_exception_handler,
    query_error_handler,
    validation_error_handler,
)
from .routes import attributes, events, stats
from .security import ApiKeyMiddleware


def create_api_app(
    repository: QueryRepository,
    config: AppConfig | None = None,
    stats_source: StatsSource | None = None,
) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        repository: Query repository serving the read endpoints.
        config: Application configuration. Its api.api_key, when set,
            enables API key checks.
        stats_source: Callable returning pipeline counters for /api/v1/stats.
            The stats endpoint answers 503 without it.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="eventscope",
        description="Read API for captured telemetry events",
        version="0.1.0",
    )

    app.state.config = config
    app.state.repository = repository
    app.state.stats_source = stats_source

    api_key = config.api.api_key if config is not None else None
    if api_key:
        app.add_middleware(ApiKeyMiddleware, api_key=api_key)

    # Register exception handlers for structured error responses
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(QueryError, query_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Mount API routes
    app.include_router(events.router, prefix="/api/v1/events", tags=["events"])
    app.include_router(attributes.router, prefix="/api/v1/attributes", tags=["attributes"])
    app.include_router(stats.router, prefix="/api/v1/stats", tags=["stats"])

    return app
