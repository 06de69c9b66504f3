"""System logger for operational events.

This module provides a singleton system logger for pipeline lifecycle events
(stage startup and shutdown, dropped batches, configuration problems) and a
lower-visibility diagnostics logger for per-item worker failures.

Logging strategy:
- Console (stderr): system messages at the configured level and above
- File (system.jsonl): Only issues (WARNING, ERROR, CRITICAL)
- File (diagnostics.jsonl): per-item failures; never written to the console

The file handlers are configured separately via configure_system_logger_file()
once the log_dir from config is available. Neither logger propagates to the
root logger, so the logging bridge never sees the pipeline's own output.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_diagnostics_logger",
    "get_system_logger",
    "set_console_level",
]

import logging
import sys
from pathlib import Path

from eventscope.constants import APP_NAME
from eventscope.utils.logging.iso_formatter import ISO8601Formatter


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# Module-level singleton loggers
_system_logger: logging.Logger | None = None
_diagnostics_logger: logging.Logger | None = None
_file_handler_configured: bool = False


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with stderr handler only.
    File handler is added later via configure_system_logger_file().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> from eventscope.telemetry.system.system_logger import get_system_logger
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "batch_flush_failed", "error": "..."})
        # Logged to stderr (and file if configured)
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.INFO)
    _system_logger.propagate = False  # Don't propagate to root logger

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def get_diagnostics_logger() -> logging.Logger:
    """Get the singleton diagnostics logger.

    Receives per-item failures from worker loops (sink errors, undecodable
    lines). It has no console handler; until a file handler is configured the
    records are discarded.

    Returns:
        logging.Logger: Diagnostics logger instance.
    """
    global _diagnostics_logger

    if _diagnostics_logger is not None:
        return _diagnostics_logger

    _diagnostics_logger = logging.getLogger(f"{APP_NAME}.diagnostics")
    _diagnostics_logger.setLevel(logging.DEBUG)
    _diagnostics_logger.propagate = False
    for handler in _diagnostics_logger.handlers:
        handler.close()
    _diagnostics_logger.handlers.clear()
    _diagnostics_logger.addHandler(logging.NullHandler())

    return _diagnostics_logger


def set_console_level(level: str) -> None:
    """Set the stderr handler level of the system logger.

    Args:
        level: Standard logging level name (e.g. "WARNING").
    """
    logger = get_system_logger()
    logger.setLevel(min(logging.INFO, logging.getLevelName(level)))
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)


def configure_system_logger_file(log_dir: Path) -> None:
    """Attach JSONL file handlers for system.jsonl and diagnostics.jsonl.

    Should be called once after config is loaded. system.jsonl receives
    WARNING and above; diagnostics.jsonl receives everything.

    Args:
        log_dir: Directory that will hold both log files.
    """
    global _file_handler_configured

    if _file_handler_configured:
        return

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if sys.platform != "win32":
            try:
                log_dir.chmod(0o700)
            except OSError:
                pass  # Permission changes might fail on some systems
    except OSError:
        pass  # If we can't create log dir, stderr will still work

    system_handler = logging.FileHandler(log_dir / "system.jsonl", mode="a", encoding="utf-8")
    system_handler.setLevel(logging.WARNING)
    system_handler.setFormatter(ISO8601Formatter())
    get_system_logger().addHandler(system_handler)

    diagnostics_handler = logging.FileHandler(log_dir / "diagnostics.jsonl", mode="a", encoding="utf-8")
    diagnostics_handler.setLevel(logging.DEBUG)
    diagnostics_handler.setFormatter(ISO8601Formatter())
    get_diagnostics_logger().addHandler(diagnostics_handler)

    _file_handler_configured = True
