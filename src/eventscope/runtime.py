"""Pipeline lifecycle.

TelemetryRuntime is the explicit context object of one capture pipeline. It
builds the stages from config and starts them in dependency order:

    persister -> sink -> event logger -> correlation emitter

and stops them in reverse. There is no module-level singleton; instrumented
code receives the runtime (or its emit method) explicitly.

Usage:
    with TelemetryRuntime(config) as runtime:
        with runtime.context.scope("http.request"):
            runtime.emit("io.file.read", "INFO", {"path": "/etc/hosts"})
"""

from __future__ import annotations

__all__ = ["TelemetryRuntime"]

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from eventscope.config import AppConfig
from eventscope.context.correlation import CorrelationContext
from eventscope.exceptions import ConfigurationError
from eventscope.logger.bridge import TelemetryLogHandler
from eventscope.logger.buffered import BufferedEventLogger
from eventscope.logger.sinks import create_sink
from eventscope.query.repository import QueryRepository
from eventscope.storage.persister import DurablePersister
from eventscope.telemetry.system.system_logger import (
    configure_system_logger_file,
    get_system_logger,
    set_console_level,
)

_system_logger = get_system_logger()


class TelemetryRuntime:
    """Owns and wires the stages of one capture pipeline.

    Attributes:
        config: Application configuration.
        context: Correlation context shared by all producers.
        persister: Local persister (None in remote mode or with a non-persister sink).
        event_logger: Producer-facing logger (None until init()).
        repository: Query repository over the local store (None without persister).
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self.context = CorrelationContext(ttl_seconds=self.config.context.ttl_seconds)
        self.persister: DurablePersister | None = None
        self.event_logger: BufferedEventLogger | None = None
        self.repository: QueryRepository | None = None
        self._bridges: list[tuple[logging.Logger, TelemetryLogHandler]] = []
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def init(self) -> "TelemetryRuntime":
        """Build and start every stage.

        Returns:
            self, for chaining.

        Raises:
            ConfigurationError: If a stage cannot be built or started. Stages
                already started are shut down again.
        """
        if self._running:
            return self

        logging_config = self.config.logging
        set_console_level(logging_config.log_level)
        if logging_config.log_dir:
            configure_system_logger_file(Path(logging_config.log_dir).expanduser())

        logger_config = self.config.event_logger
        try:
            if logger_config.sink == "persister":
                self.persister = DurablePersister.from_config(self.config.persister)
                self.persister.start()
                self.repository = QueryRepository.from_config(self.persister.store, self.config.query)

            sink = create_sink(logger_config, self.persister)
            self.event_logger = BufferedEventLogger.from_config(
                logger_config,
                self.config.identity,
                sink,
                context=self.context,
            )
            self.event_logger.start()
        except ConfigurationError:
            self._stop_stages()
            raise

        self.context.set_emitter(self.emit)
        self._running = True
        _system_logger.info(
            {
                "event": "runtime_started",
                "aid": self.config.identity.aid,
                "mode": logger_config.mode,
                "sink": logger_config.sink,
                "message": f"Telemetry runtime started (aid={self.config.identity.aid})",
            }
        )
        return self

    def emit(self, namespace: str, level: str, metadata: Mapping[str, Any] | None = None) -> bool:
        """Capture one event. Never raises.

        Returns:
            True if the event was accepted, False if dropped or not running.
        """
        event_logger = self.event_logger
        if event_logger is None:
            return False
        return event_logger.log(namespace, level, metadata)

    def install_log_bridge(self, logger: logging.Logger | None = None, level: int = logging.NOTSET) -> TelemetryLogHandler:
        """Forward records of a standard logger (root by default) into the pipeline.

        The handler is removed again on shutdown().

        Raises:
            ConfigurationError: If called before init().
        """
        if self.event_logger is None:
            raise ConfigurationError("install_log_bridge() requires an initialized runtime")
        target = logger if logger is not None else logging.getLogger()
        handler = TelemetryLogHandler(self.event_logger, level)
        target.addHandler(handler)
        self._bridges.append((target, handler))
        return handler

    def stats(self) -> dict[str, Any]:
        """Return counters of every stage."""
        return {
            "context": self.context.stats(),
            "event_logger": self.event_logger.stats() if self.event_logger else {},
            "persister": self.persister.stats() if self.persister else {},
        }

    def shutdown(self) -> None:
        """Stop every stage in reverse start order."""
        if not self._running:
            return
        self._running = False
        self._stop_stages()
        _system_logger.info(
            {
                "event": "runtime_stopped",
                "message": "Telemetry runtime stopped",
            }
        )

    def _stop_stages(self) -> None:
        for target, handler in self._bridges:
            target.removeHandler(handler)
        self._bridges.clear()
        self.context.set_emitter(None)
        if self.event_logger is not None:
            self.event_logger.shutdown()
        if self.persister is not None:
            self.persister.shutdown()

    def __enter__(self) -> "TelemetryRuntime":
        return self.init()

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
