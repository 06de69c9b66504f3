"""Pipeline statistics API endpoint.

Returns the counters of the correlation context, the event logger and the
persister (enqueued, dropped, flushed, errors, queue depth).

Routes mounted at: /api/v1/stats
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from eventscope.api.deps import StatsSourceDep
from eventscope.api.schemas import StatsResponse

router = APIRouter()


@router.get("", response_model=StatsResponse)
async def get_stats(stats_source: StatsSourceDep) -> StatsResponse:
    """Get pipeline counters."""
    return StatsResponse(**stats_source())
