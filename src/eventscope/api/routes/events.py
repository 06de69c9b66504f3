"""Event query API endpoints.

- GET /api/v1/events             - Filtered, paginated events (newest first)
- GET /api/v1/events/count       - Result size without fetching rows
- GET /api/v1/events/{event_id}  - One event with its attributes

String filters match exactly unless they contain '*'.

Routes mounted at: /api/v1/events
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Query

from eventscope.api.deps import RepositoryDep
from eventscope.api.errors import APIError, ErrorCode
from eventscope.api.schemas import CountResult, EventDetail, EventPage
from eventscope.models import Priority
from eventscope.query.filters import EventFilter

router = APIRouter()


# =============================================================================
# Shared Query Parameters
# =============================================================================

NamespaceQuery = Query(default=None, description="Namespace, exact or '*' pattern (e.g. io.file.*)")
StartTimeQuery = Query(default=None, alias="startTime", description="Inclusive lower bound, epoch ms")
EndTimeQuery = Query(default=None, alias="endTime", description="Inclusive upper bound, epoch ms")
AidQuery = Query(default=None, description="Agent id (exact)")
CidQuery = Query(default=None, description="Correlation id (exact)")
KeyQuery = Query(default=None, description="Event has an attribute with this key (exact or '*' pattern)")
ValueQuery = Query(default=None, description="Event has an attribute with this value (exact or '*' pattern)")
PriorityQuery = Query(default=None, description="Priority: TRACE, DEBUG, INFO, WARN or ERROR")
OffsetQuery = Query(default=0, description="Rows to skip")
LimitQuery = Query(default=None, description="Page size; clamped to the configured maximum")


# =============================================================================
# Shared Helper Functions
# =============================================================================


def _build_filter(
    namespace: str | None,
    start_time: int | None,
    end_time: int | None,
    aid: str | None,
    cid: str | None,
    key: str | None,
    value: str | None,
    priority: str | None,
) -> EventFilter:
    """Build an EventFilter from query parameters.

    Raises:
        APIError: 400 INVALID_PARAMETER for an unknown priority.
    """
    parsed_priority: Priority | None = None
    if priority:
        try:
            parsed_priority = Priority.parse(priority)
        except ValueError:
            raise APIError(
                status_code=400,
                code=ErrorCode.INVALID_PARAMETER,
                message=f"Unknown priority: {priority}",
                details={"priority": priority, "allowed": [p.value for p in Priority]},
            ) from None

    return EventFilter(
        namespace=namespace,
        start_time=start_time,
        end_time=end_time,
        aid=aid,
        cid=cid,
        key=key,
        value=value,
        priority=parsed_priority,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=EventPage)
def list_events(
    repository: RepositoryDep,
    namespace: str | None = NamespaceQuery,
    start_time: int | None = StartTimeQuery,
    end_time: int | None = EndTimeQuery,
    aid: str | None = AidQuery,
    cid: str | None = CidQuery,
    key: str | None = KeyQuery,
    value: str | None = ValueQuery,
    priority: str | None = PriorityQuery,
    offset: int = OffsetQuery,
    limit: int | None = LimitQuery,
) -> EventPage:
    """Get one page of events matching all given filters, newest first."""
    filters = _build_filter(namespace, start_time, end_time, aid, cid, key, value, priority)
    return repository.find(filters, offset=offset, limit=limit)


@router.get("/count", response_model=CountResult)
def count_events(
    repository: RepositoryDep,
    namespace: str | None = NamespaceQuery,
    start_time: int | None = StartTimeQuery,
    end_time: int | None = EndTimeQuery,
    aid: str | None = AidQuery,
    cid: str | None = CidQuery,
    key: str | None = KeyQuery,
    value: str | None = ValueQuery,
    priority: str | None = PriorityQuery,
    limit: int | None = LimitQuery,
) -> CountResult:
    """Get the number of matching events and pages without fetching them."""
    filters = _build_filter(namespace, start_time, end_time, aid, cid, key, value, priority)
    return repository.count(filters, limit=limit)


@router.get("/{event_id}", response_model=EventDetail)
def get_event(event_id: str, repository: RepositoryDep) -> EventDetail:
    """Get one event with all of its attributes.

    Raises:
        APIError: 404 EVENT_NOT_FOUND if no event has this id.
    """
    detail = repository.get_event(event_id)
    if detail is None:
        raise APIError(
            status_code=404,
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
            details={"event_id": event_id},
        )
    return detail
