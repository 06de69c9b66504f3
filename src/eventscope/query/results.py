"""Result envelopes returned by the query repository.

Serialized with camelCase names (pageSize, totalElements, queryTimeMs); the
Python attributes stay snake_case.
"""

from __future__ import annotations

__all__ = [
    "AttributePage",
    "CountResult",
    "EventDetail",
    "EventPage",
    "Pagination",
    "QueryMetadata",
]

from pydantic import BaseModel, ConfigDict, Field

from eventscope.models import Attribute, Event

_CAMEL = ConfigDict(populate_by_name=True)


class Pagination(BaseModel):
    """Position of a page in the result set.

    Attributes:
        page: offset // page_size.
        page_size: Effective (clamped) page size.
        total_elements: Matching rows, capped at the result ceiling.
    """

    model_config = _CAMEL

    page: int
    page_size: int = Field(alias="pageSize")
    total_elements: int = Field(alias="totalElements")


class QueryMetadata(BaseModel):
    """Execution details of a query.

    Attributes:
        query_time_ms: Wall time spent in the store.
        truncated: True when more rows matched than the result ceiling allows.
    """

    model_config = _CAMEL

    query_time_ms: float = Field(alias="queryTimeMs")
    truncated: bool = False


class EventPage(BaseModel):
    """One page of events, newest first."""

    content: list[Event]
    pagination: Pagination
    metadata: QueryMetadata


class AttributePage(BaseModel):
    """One page of attribute rows ordered by (event_id, key)."""

    content: list[Attribute]
    pagination: Pagination
    metadata: QueryMetadata


class EventDetail(BaseModel):
    """An event header with all of its attributes."""

    event: Event
    attributes: list[Attribute]


class CountResult(BaseModel):
    """Size of a result set without fetching it."""

    model_config = _CAMEL

    total_elements: int = Field(alias="totalElements")
    total_pages: int = Field(alias="totalPages")
    truncated: bool = False
