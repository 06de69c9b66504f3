"""Custom exceptions for eventscope.

This module contains all custom exceptions used throughout the package.
Failures are classified by ErrorKind:

Producer-boundary errors (never propagate to the instrumented code):
    - PRODUCER_ERROR: Bad input at emit(); recorded as a diagnostic event
    - QUEUE_OVERFLOW: Bounded queue full; counted, no exception

Pipeline errors (the item or batch is skipped, the stage keeps running):
    - FormatError: A wire line could not be decoded
    - PersistenceError: A batch transaction failed and was rolled back

Read-path errors (surfaced to the caller):
    - QueryError: The store could not answer a query

Startup failures (fatal):
    - ConfigurationError: Config invalid, sink/store unknown, store unopenable

Usage:
    from eventscope.exceptions import FormatError, ConfigurationError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "ErrorKind",
    "EventscopeError",
    "FormatError",
    "PersistenceError",
    "QueryError",
]

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error taxonomy for the telemetry pipeline."""

    PRODUCER_ERROR = "PRODUCER_ERROR"
    FORMAT_ERROR = "FORMAT_ERROR"
    QUEUE_OVERFLOW = "QUEUE_OVERFLOW"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    QUERY_ERROR = "QUERY_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class EventscopeError(Exception):
    """Base exception for eventscope failures.

    Attributes:
        kind: Error category from ErrorKind.
        message: Human-readable description.
    """

    kind: ErrorKind = ErrorKind.PRODUCER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Pipeline Errors (item or batch skipped, stage continues)
# =============================================================================


class FormatError(EventscopeError):
    """A wire line could not be decoded into an event.

    Distinct from OSError so callers can tell a bad line apart from a
    failing transport.

    Attributes:
        reason: Machine-readable reason (e.g. "segment_count", "control_syntax").
        line: The offending line, if available.
    """

    kind = ErrorKind.FORMAT_ERROR

    def __init__(self, message: str, *, reason: str = "malformed", line: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.line = line

    def __repr__(self) -> str:
        return f"FormatError({self.message!r}, reason={self.reason!r})"


class PersistenceError(EventscopeError):
    """A batch could not be written to the store.

    Attributes:
        batch_size: Number of events in the failed batch.
    """

    kind = ErrorKind.PERSISTENCE_ERROR

    def __init__(self, message: str, *, batch_size: int = 0) -> None:
        super().__init__(message)
        self.batch_size = batch_size


# =============================================================================
# Read-path Errors
# =============================================================================


class QueryError(EventscopeError):
    """The store could not answer a query.

    Attributes:
        code: Stable error code for API responses.
        details: Additional context for the caller.
    """

    kind = ErrorKind.QUERY_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: str = "QUERY_FAILED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details


# =============================================================================
# Startup Failures (fatal)
# =============================================================================


class ConfigurationError(EventscopeError):
    """Configuration is invalid or a stage cannot start.

    Raised when:
    - Config file contains invalid JSON or fails Pydantic validation
    - A sink or store name is not registered
    - The logger mode and sink are incompatible
    - The store path cannot be opened

    Exit code 16 indicates configuration failure.
    """

    kind = ErrorKind.CONFIGURATION_ERROR
    exit_code: int = 16
