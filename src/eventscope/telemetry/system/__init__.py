"""System operational logging.

Provides the system logger for pipeline lifecycle events and the diagnostics
logger for per-item worker failures.
"""

from eventscope.telemetry.system.system_logger import (
    ConsoleFormatter,
    configure_system_logger_file,
    get_diagnostics_logger,
    get_system_logger,
    set_console_level,
)

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_diagnostics_logger",
    "get_system_logger",
    "set_console_level",
]
