"""Read path over the event store.

Every paged query runs twice against the same predicate: once for the page
(LIMIT/OFFSET) and once as an independent COUNT. The reachable window is
capped at max_result_size; when more rows match, totalElements reports the
cap and truncated is set, so summing page sizes over all pages always equals
totalElements.

Ordering:
    events      timestamp DESC, event_id ASC
    attributes  event_id ASC, key ASC, insertion order
"""

from __future__ import annotations

__all__ = ["QueryRepository"]

import math
import time
from typing import Any

from eventscope.config import QueryConfig
from eventscope.constants import EVENT_ATTR_TABLE, EVENT_TABLE
from eventscope.exceptions import QueryError
from eventscope.models import Attribute, Event, Priority
from eventscope.query.filters import AttributeFilter, EventFilter, attribute_predicate, event_predicate
from eventscope.query.results import (
    AttributePage,
    CountResult,
    EventDetail,
    EventPage,
    Pagination,
    QueryMetadata,
)
from eventscope.storage.store import EventStore

_EVENT_COLUMNS = "e.event_id, e.config_file, e.timestamp, e.thread_id, e.priority, e.namespace, e.aid, e.cid, e.is_stable"
_ATTR_COLUMNS = "a.event_id, a.key, a.value"


def _row_to_event(row: dict[str, Any]) -> Event:
    try:
        return Event(
            event_id=row["event_id"],
            timestamp=row["timestamp"],
            thread_id=row["thread_id"] or "",
            priority=Priority.parse(row["priority"]),
            namespace=row["namespace"],
            aid=row["aid"] or "",
            cid=row["cid"] or "",
            is_stable=bool(row["is_stable"]),
            config_tag=row["config_file"] or "",
        )
    except ValueError as e:
        raise QueryError(
            f"Stored event {row.get('event_id')!r} is unreadable: {e}",
            code="CORRUPT_ROW",
        ) from e


def _row_to_attribute(row: dict[str, Any]) -> Attribute:
    return Attribute(event_id=row["event_id"], key=row["key"], value=row["value"] or "")


class QueryRepository:
    """Filtered, paginated queries over events and attributes.

    Args:
        store: Store to read from.
        default_page_size: Page size when the caller passes none.
        max_page_size: Upper clamp for page sizes.
        max_result_size: Ceiling on the window reachable by pagination.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        default_page_size: int = 100,
        max_page_size: int = 1000,
        max_result_size: int = 100_000,
    ) -> None:
        self._store = store
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size
        self._max_result_size = max_result_size

    @classmethod
    def from_config(cls, store: EventStore, config: QueryConfig) -> "QueryRepository":
        return cls(
            store,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
            max_result_size=config.max_result_size,
        )

    @property
    def max_page_size(self) -> int:
        return self._max_page_size

    def clamp_limit(self, limit: int | None) -> int:
        """Clamp a requested page size into [1, max_page_size]."""
        if limit is None:
            limit = self._default_page_size
        return max(1, min(limit, self._max_page_size))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def find(self, filters: EventFilter | None = None, offset: int = 0, limit: int | None = None) -> EventPage:
        """Return one page of events matching filters, newest first.

        Raises:
            QueryError: INVALID_PARAMETER for a negative offset, or a store failure.
        """
        filters = filters or EventFilter()
        self._check_offset(offset)
        size = self.clamp_limit(limit)
        where, params = event_predicate(filters)

        started = time.perf_counter()
        total, truncated = self._capped_count(f"SELECT COUNT(*) AS n FROM {EVENT_TABLE} e{where}", params)
        rows: list[dict[str, Any]] = []
        window = min(size, total - offset)
        if window > 0:
            rows = self._store.fetch_all(
                f"SELECT {_EVENT_COLUMNS} FROM {EVENT_TABLE} e{where}"
                " ORDER BY e.timestamp DESC, e.event_id ASC LIMIT ? OFFSET ?",
                [*params, window, offset],
            )
        elapsed_ms = (time.perf_counter() - started) * 1000

        return EventPage(
            content=[_row_to_event(row) for row in rows],
            pagination=Pagination(page=offset // size, page_size=size, total_elements=total),
            metadata=QueryMetadata(query_time_ms=round(elapsed_ms, 3), truncated=truncated),
        )

    def count(self, filters: EventFilter | None = None, limit: int | None = None) -> CountResult:
        """Return the (capped) number of matching events and the page count."""
        filters = filters or EventFilter()
        size = self.clamp_limit(limit)
        where, params = event_predicate(filters)
        total, truncated = self._capped_count(f"SELECT COUNT(*) AS n FROM {EVENT_TABLE} e{where}", params)
        return CountResult(total_elements=total, total_pages=math.ceil(total / size), truncated=truncated)

    def get_event(self, event_id: str) -> EventDetail | None:
        """Return an event with its attributes, or None if unknown."""
        row = self._store.fetch_one(
            f"SELECT {_EVENT_COLUMNS} FROM {EVENT_TABLE} e WHERE e.event_id = ?",
            [event_id],
        )
        if row is None:
            return None
        return EventDetail(event=_row_to_event(row), attributes=self.get_attributes(event_id))

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def get_attributes(self, event_id: str) -> list[Attribute]:
        """Return every attribute of one event in (key, insertion) order."""
        rows = self._store.fetch_all(
            f"SELECT {_ATTR_COLUMNS} FROM {EVENT_ATTR_TABLE} a WHERE a.event_id = ? ORDER BY a.key ASC, a.attr_id ASC",
            [event_id],
        )
        return [_row_to_attribute(row) for row in rows]

    def find_attributes(
        self,
        filters: AttributeFilter | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> AttributePage:
        """Return one page of attribute rows matching filters."""
        filters = filters or AttributeFilter()
        self._check_offset(offset)
        size = self.clamp_limit(limit)
        where, params = attribute_predicate(filters)

        started = time.perf_counter()
        total, truncated = self._capped_count(f"SELECT COUNT(*) AS n FROM {EVENT_ATTR_TABLE} a{where}", params)
        rows: list[dict[str, Any]] = []
        window = min(size, total - offset)
        if window > 0:
            rows = self._store.fetch_all(
                f"SELECT {_ATTR_COLUMNS} FROM {EVENT_ATTR_TABLE} a{where}"
                " ORDER BY a.event_id ASC, a.key ASC, a.attr_id ASC LIMIT ? OFFSET ?",
                [*params, window, offset],
            )
        elapsed_ms = (time.perf_counter() - started) * 1000

        return AttributePage(
            content=[_row_to_attribute(row) for row in rows],
            pagination=Pagination(page=offset // size, page_size=size, total_elements=total),
            metadata=QueryMetadata(query_time_ms=round(elapsed_ms, 3), truncated=truncated),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_offset(offset: int) -> None:
        if offset < 0:
            raise QueryError(
                "offset must be >= 0",
                code="INVALID_PARAMETER",
                details={"offset": offset},
            )

    def _capped_count(self, sql: str, params: list[Any]) -> tuple[int, bool]:
        row = self._store.fetch_one(sql, params)
        total = int(row["n"]) if row else 0
        if total > self._max_result_size:
            return self._max_result_size, True
        return total, False
