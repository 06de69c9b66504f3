"""Bridge from the standard logging module into the event logger.

Attach TelemetryLogHandler to any logger (usually the root logger) and every
record becomes an event: the logger name is the namespace, the record level
maps onto the priority scale, and the formatted message plus the record's
origin become attributes.

Records from eventscope's own loggers, from sqlite3, and records whose message
carries persistence statements are filtered so the pipeline never captures its
own output.
"""

from __future__ import annotations

__all__ = ["FeedbackLoopFilter", "TelemetryLogHandler", "priority_for_levelno"]

import logging

from eventscope.constants import CALLER_KEY, INTERNAL_NAMESPACE_PREFIX
from eventscope.logger.buffered import BufferedEventLogger
from eventscope.models import Priority
from eventscope.wire.codec import is_control_syntax

_EXCLUDED_LOGGERS: tuple[str, ...] = (INTERNAL_NAMESPACE_PREFIX, "sqlite3")


def priority_for_levelno(levelno: int) -> Priority:
    """Map a logging level number onto the event priority scale."""
    if levelno >= logging.ERROR:
        return Priority.ERROR
    if levelno >= logging.WARNING:
        return Priority.WARN
    if levelno >= logging.INFO:
        return Priority.INFO
    if levelno >= logging.DEBUG:
        return Priority.DEBUG
    return Priority.TRACE


class FeedbackLoopFilter(logging.Filter):
    """Rejects records that would feed the pipeline's own output back into it."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        for excluded in _EXCLUDED_LOGGERS:
            if name == excluded or name.startswith(excluded + "."):
                return False
        try:
            message = record.getMessage()
        except Exception:
            # Filters run outside Handler.handleError; emit() reports the bad record
            return True
        return not is_control_syntax(message)


class TelemetryLogHandler(logging.Handler):
    """logging.Handler that forwards records to a BufferedEventLogger.

    Args:
        event_logger: Destination logger.
        level: Minimum record level.
    """

    def __init__(self, event_logger: BufferedEventLogger, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._event_logger = event_logger
        self.addFilter(FeedbackLoopFilter())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            metadata = {
                "message": record.getMessage(),
                "logger": record.name,
                CALLER_KEY: f"{record.module}:{record.lineno}",
            }
            if record.exc_info:
                metadata["exception"] = logging.Formatter().formatException(record.exc_info)
            namespace = record.name or "root"
        except Exception:
            self.handleError(record)
            return

        self._event_logger.log(namespace, priority_for_levelno(record.levelno).value, metadata)
