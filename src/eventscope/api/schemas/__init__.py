"""API schemas (Pydantic models) for request/response validation."""

from __future__ import annotations

from eventscope.api.schemas.events import (
    AttributePage,
    CountResult,
    EventDetail,
    EventPage,
    StatsResponse,
)

__all__ = [
    "AttributePage",
    "CountResult",
    "EventDetail",
    "EventPage",
    "StatsResponse",
]
