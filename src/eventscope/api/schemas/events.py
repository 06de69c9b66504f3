"""Event API schemas.

Page, count and detail envelopes are shared with the query repository
(single source of truth); this module adds the API-only responses.
"""

from __future__ import annotations

__all__ = [
    # Re-exported from the query layer
    "AttributePage",
    "CountResult",
    "EventDetail",
    "EventPage",
    # API-only
    "StatsResponse",
]

from typing import Any

from pydantic import BaseModel

from eventscope.query.results import (  # noqa: F401
    AttributePage as AttributePage,
    CountResult as CountResult,
    EventDetail as EventDetail,
    EventPage as EventPage,
)


class StatsResponse(BaseModel):
    """Pipeline counters, one section per stage."""

    context: dict[str, Any] = {}
    event_logger: dict[str, Any] = {}
    persister: dict[str, Any] = {}
