"""Query filters and their SQL predicates.

All filters are optional and AND-combined. String filters match exactly
unless they contain '*', which matches any run of characters
("io.file.*" matches "io.file.read" and "io.file.write.bulk"). Matching is
case-sensitive either way.
"""

from __future__ import annotations

__all__ = [
    "AttributeFilter",
    "EventFilter",
    "attribute_predicate",
    "event_predicate",
    "to_glob",
]

from typing import Any

from pydantic import BaseModel

from eventscope.constants import EVENT_ATTR_TABLE
from eventscope.models import Priority

WILDCARD = "*"


class EventFilter(BaseModel):
    """Predicate over events.

    Attributes:
        namespace: Exact namespace or '*' pattern.
        start_time: Inclusive lower bound (epoch ms).
        end_time: Inclusive upper bound (epoch ms).
        aid: Exact agent id.
        cid: Exact correlation id.
        key: Event has an attribute whose key matches (exact or pattern).
        value: Event has an attribute whose value matches (exact or pattern).
        priority: Exact priority.
    """

    namespace: str | None = None
    start_time: int | None = None
    end_time: int | None = None
    aid: str | None = None
    cid: str | None = None
    key: str | None = None
    value: str | None = None
    priority: Priority | None = None


class AttributeFilter(BaseModel):
    """Predicate over attribute rows.

    Attributes:
        key: Exact key or '*' pattern.
        value: Exact value or '*' pattern.
        event_id: Exact owning event id.
    """

    key: str | None = None
    value: str | None = None
    event_id: str | None = None


def to_glob(pattern: str) -> str:
    """Translate a '*' pattern into a SQLite GLOB pattern.

    Only '*' is a wildcard; GLOB's own '?' and '[' are made literal.
    """
    out: list[str] = []
    for ch in pattern:
        if ch == "?":
            out.append("[?]")
        elif ch == "[":
            out.append("[[]")
        else:
            out.append(ch)
    return "".join(out)


def _match(column: str, pattern: str, params: list[Any]) -> str:
    if WILDCARD in pattern:
        params.append(to_glob(pattern))
        return f"{column} GLOB ?"
    params.append(pattern)
    return f"{column} = ?"


def _where(clauses: list[str]) -> str:
    return (" WHERE " + " AND ".join(clauses)) if clauses else ""


def event_predicate(filters: EventFilter, alias: str = "e") -> tuple[str, list[Any]]:
    """Build the WHERE clause for an event query.

    Args:
        filters: Event filter.
        alias: Alias of the EVENT table in the surrounding query.

    Returns:
        (" WHERE ..." or "", parameters)
    """
    clauses: list[str] = []
    params: list[Any] = []

    if filters.namespace:
        clauses.append(_match(f"{alias}.namespace", filters.namespace, params))
    if filters.start_time is not None:
        clauses.append(f"{alias}.timestamp >= ?")
        params.append(filters.start_time)
    if filters.end_time is not None:
        clauses.append(f"{alias}.timestamp <= ?")
        params.append(filters.end_time)
    if filters.aid:
        clauses.append(f"{alias}.aid = ?")
        params.append(filters.aid)
    if filters.cid:
        clauses.append(f"{alias}.cid = ?")
        params.append(filters.cid)
    if filters.priority is not None:
        clauses.append(f"{alias}.priority = ?")
        params.append(filters.priority.value)

    if filters.key or filters.value:
        # One attribute row has to satisfy both key and value
        attr_clauses = [f"a.event_id = {alias}.event_id"]
        if filters.key:
            attr_clauses.append(_match("a.key", filters.key, params))
        if filters.value:
            attr_clauses.append(_match("a.value", filters.value, params))
        clauses.append(f"EXISTS (SELECT 1 FROM {EVENT_ATTR_TABLE} a WHERE {' AND '.join(attr_clauses)})")

    return _where(clauses), params


def attribute_predicate(filters: AttributeFilter, alias: str = "a") -> tuple[str, list[Any]]:
    """Build the WHERE clause for an attribute query."""
    clauses: list[str] = []
    params: list[Any] = []

    if filters.key:
        clauses.append(_match(f"{alias}.key", filters.key, params))
    if filters.value:
        clauses.append(_match(f"{alias}.value", filters.value, params))
    if filters.event_id:
        clauses.append(f"{alias}.event_id = ?")
        params.append(filters.event_id)

    return _where(clauses), params
