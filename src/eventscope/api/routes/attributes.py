"""Attribute query API endpoint.

- GET /api/v1/attributes - Attribute rows ordered by (event_id, key)

Routes mounted at: /api/v1/attributes
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Query

from eventscope.api.deps import RepositoryDep
from eventscope.api.schemas import AttributePage
from eventscope.query.filters import AttributeFilter

router = APIRouter()


@router.get("", response_model=AttributePage)
def list_attributes(
    repository: RepositoryDep,
    key: str | None = Query(default=None, description="Key, exact or '*' pattern"),
    value: str | None = Query(default=None, description="Value, exact or '*' pattern"),
    event_id: str | None = Query(default=None, alias="eventId", description="Owning event id"),
    offset: int = Query(default=0, description="Rows to skip"),
    limit: int | None = Query(default=None, description="Page size; clamped to the configured maximum"),
) -> AttributePage:
    """Get one page of attribute rows matching all given filters."""
    filters = AttributeFilter(key=key, value=value, event_id=event_id)
    return repository.find_attributes(filters, offset=offset, limit=limit)
