"""Pydantic models for captured events.

An Event is the header record of one observed occurrence. Its attributes
travel next to it as an ordered list of (key, value) pairs on the write path
and come back as Attribute models on the read path. Duplicate keys are kept.
"""

from __future__ import annotations

__all__ = [
    "Attribute",
    "AttributePairs",
    "Event",
    "Priority",
]

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Ordered attribute list for one event; keys may repeat
AttributePairs = list[tuple[str, str]]


class Priority(str, Enum):
    """Fixed event priority scale, lowest to highest."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        """Position on the scale (TRACE=0 .. ERROR=4)."""
        return _RANKS[self]

    @classmethod
    def parse(cls, level: object) -> "Priority":
        """Parse a level name, case-insensitively.

        "WARNING" and "CRITICAL"/"FATAL" are accepted as aliases so records
        from the standard logging module map onto the scale.

        Raises:
            ValueError: If the level is not a known priority.
        """
        if isinstance(level, Priority):
            return level
        if not isinstance(level, str):
            raise ValueError(f"level must be a string, got {type(level).__name__}")
        name = level.strip().upper()
        name = _ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"unknown priority: {level!r}") from None


_RANKS: dict[Priority, int] = {p: i for i, p in enumerate(Priority)}
_ALIASES: dict[str, str] = {"WARNING": "WARN", "CRITICAL": "ERROR", "FATAL": "ERROR"}


class Event(BaseModel):
    """Header record of one captured event.

    Immutable once built; enrichment produces a copy via model_copy(update=...).

    Attributes:
        event_id: Globally unique id assigned at capture time.
        timestamp: Producer-assigned epoch milliseconds.
        thread_id: Name of the producing thread.
        priority: One of TRACE, DEBUG, INFO, WARN, ERROR.
        namespace: Non-empty dotted origin (e.g. "io.file.read").
        aid: Owning agent/application instance id.
        cid: Correlation (trace) id; empty when captured outside any scope.
        is_stable: True once header and attributes were committed as a unit.
        config_tag: Provenance tag of the producing configuration.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(min_length=1)
    timestamp: int
    thread_id: str
    priority: Priority
    namespace: str = Field(min_length=1)
    aid: str = ""
    cid: str = ""
    is_stable: bool = True
    config_tag: str = ""


class Attribute(BaseModel):
    """One stored key/value pair of an event."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    key: str
    value: str
