"""Buffered event logger: the producer-facing capture API.

log() builds an Event from (namespace, level, metadata), enriches it with the
calling thread's correlation context, and hands it to a sink. It never blocks
on IO and never raises into instrumented code.

Modes, fixed at construction:
    direct    the sink is called synchronously on the producer thread
    buffered  bounded queue drained by one worker thread into a local sink
    remote    same as buffered, with a transport sink

A full queue drops the event and increments the drop counter. Bad producer
input is recorded as a self-diagnostic event under eventscope.diagnostics.
"""

from __future__ import annotations

__all__ = ["BufferedEventLogger"]

import inspect
import queue
import threading
import time
import uuid
from collections.abc import Mapping
from typing import Any

from eventscope.config import EventLoggerConfig, IdentityConfig, LoggerMode
from eventscope.constants import (
    CALLER_KEY,
    DIAGNOSTIC_NAMESPACE_PREFIX,
    INTERNAL_NAMESPACE_PREFIX,
)
from eventscope.context.correlation import CorrelationContext
from eventscope.context.reentrancy import internal_emission
from eventscope.exceptions import ConfigurationError, ErrorKind
from eventscope.logger.sinks import EventSink
from eventscope.models import AttributePairs, Event, Priority
from eventscope.telemetry.system.system_logger import get_diagnostics_logger, get_system_logger

_system_logger = get_system_logger()

_PRODUCER_ERROR_NAMESPACE = f"{DIAGNOSTIC_NAMESPACE_PREFIX}.producer"

# Frames from these modules are skipped when resolving the caller
_SKIPPED_MODULE_PREFIXES: tuple[str, ...] = (INTERNAL_NAMESPACE_PREFIX + ".", "logging")

_Item = tuple[Event, AttributePairs]


def _caller_location() -> str:
    frame = inspect.currentframe()
    try:
        while frame is not None:
            module = frame.f_globals.get("__name__", "")
            if not module.startswith(_SKIPPED_MODULE_PREFIXES):
                return f"{module}:{frame.f_lineno}"
            frame = frame.f_back
        return "unknown"
    finally:
        del frame


class BufferedEventLogger:
    """Capture API with a bounded queue and one forwarding worker.

    Args:
        sink: Destination for events.
        mode: direct, buffered or remote.
        aid: Agent id stamped on every event.
        config_tag: Provenance tag stamped on every event.
        context: Correlation context used for cid and enrichment.
        queue_capacity: Bounded queue size.
        flush_interval_seconds: Worker wait between drains.
        shutdown_grace_seconds: Upper bound for the final drain.
        default_level: Threshold for namespaces without an override.
        levels: Per-namespace thresholds (longest dotted prefix wins).
    """

    def __init__(
        self,
        sink: EventSink,
        *,
        mode: LoggerMode = "buffered",
        aid: str = "",
        config_tag: str = "",
        context: CorrelationContext | None = None,
        queue_capacity: int = 2000,
        flush_interval_seconds: float = 0.01,
        shutdown_grace_seconds: float = 5.0,
        default_level: str = "TRACE",
        levels: Mapping[str, str] | None = None,
    ) -> None:
        self._sink = sink
        self._mode = mode
        self._aid = aid
        self._config_tag = config_tag
        self._context = context
        self._capacity = queue_capacity
        self._flush_interval = flush_interval_seconds
        self._grace = shutdown_grace_seconds
        self._queue: queue.Queue[_Item] = queue.Queue(maxsize=queue_capacity)

        self._default_threshold = Priority.parse(default_level)
        # Longest prefix first so the first match wins
        self._thresholds: list[tuple[str, Priority]] = sorted(
            ((prefix, Priority.parse(level)) for prefix, level in (levels or {}).items()),
            key=lambda item: len(item[0]),
            reverse=True,
        )

        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._started = False
        self._closed = False

        self._lock = threading.Lock()
        self._counters = {
            "enqueued": 0,
            "dropped": 0,
            "dropped_at_shutdown": 0,
            "forwarded": 0,
            "filtered": 0,
            "sink_errors": 0,
            "producer_errors": 0,
        }

    @classmethod
    def from_config(
        cls,
        config: EventLoggerConfig,
        identity: IdentityConfig,
        sink: EventSink,
        context: CorrelationContext | None = None,
    ) -> "BufferedEventLogger":
        return cls(
            sink,
            mode=config.mode,
            aid=identity.aid,
            config_tag=identity.config_tag,
            context=context,
            queue_capacity=config.queue_capacity,
            flush_interval_seconds=config.flush_interval_seconds,
            shutdown_grace_seconds=config.shutdown_grace_seconds,
            default_level=config.default_level,
            levels=config.levels,
        )

    @property
    def mode(self) -> LoggerMode:
        return self._mode

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the sink and, unless in direct mode, start the worker.

        Raises:
            ConfigurationError: If the sink cannot be opened.
        """
        if self._started:
            return
        try:
            self._sink.open()
        except OSError as e:
            raise ConfigurationError(f"Cannot open sink '{self._sink.name}': {e}") from e

        self._started = True
        if self._mode != "direct":
            self._thread = threading.Thread(target=self._run, name="eventscope-logger", daemon=True)
            self._thread.start()

        _system_logger.info(
            {
                "event": "event_logger_started",
                "mode": self._mode,
                "sink": self._sink.name,
                "message": f"Event logger started ({self._mode} -> {self._sink.name})",
            }
        )

    def shutdown(self) -> None:
        """Stop the worker after a final drain bounded by the grace period.

        Events still queued afterwards are dropped and counted.
        """
        if self._closed:
            return
        self._closed = True
        self._stop.set()

        if self._thread is not None:
            self._thread.join(self._grace + self._flush_interval + 1.0)
            if self._thread.is_alive():
                _system_logger.warning(
                    {
                        "event": "event_logger_shutdown_timeout",
                        "message": "Event logger worker did not stop within the grace period",
                    }
                )
                return
        self._discard_remaining()
        self._sink.close()

    # ------------------------------------------------------------------
    # Producer API
    # ------------------------------------------------------------------

    def is_enabled_at(self, namespace: str, level: str) -> bool:
        """Return True if events at this level would be captured for namespace."""
        try:
            priority = Priority.parse(level)
        except ValueError:
            return False
        return priority.rank >= self._threshold_for(namespace).rank

    def log(self, namespace: str, level: str, metadata: Mapping[str, Any] | None = None) -> bool:
        """Capture one event. Never blocks on IO and never raises.

        Args:
            namespace: Non-empty dotted origin of the event.
            level: Priority name (TRACE, DEBUG, INFO, WARN, ERROR).
            metadata: Attribute values; converted to strings.

        Returns:
            True if the event was accepted for delivery.
        """
        try:
            priority = Priority.parse(level)
            if not self._is_enabled(namespace, priority):
                with self._lock:
                    self._counters["filtered"] += 1
                return False
            event, attributes = self._build(namespace, priority, metadata)
        except Exception as e:
            self._producer_error(namespace, level, e)
            return False

        if self._mode == "direct":
            if self._closed:
                with self._lock:
                    self._counters["dropped"] += 1
                return False
            self._forward(event, attributes)
            return True

        with self._lock:
            if self._closed:
                self._counters["dropped"] += 1
                return False
            try:
                self._queue.put_nowait((event, attributes))
            except queue.Full:
                self._counters["dropped"] += 1
                return False
            self._counters["enqueued"] += 1
        return True

    def stats(self) -> dict[str, Any]:
        """Return logger counters plus queue depth and capacity."""
        with self._lock:
            result: dict[str, Any] = dict(self._counters)
        result["mode"] = self._mode
        result["sink"] = self._sink.name
        result["queue_depth"] = self._queue.qsize()
        result["queue_capacity"] = self._capacity
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _threshold_for(self, namespace: str) -> Priority:
        for prefix, threshold in self._thresholds:
            if namespace == prefix or namespace.startswith(prefix + "."):
                return threshold
        return self._default_threshold

    def _is_enabled(self, namespace: Any, priority: Priority) -> bool:
        if not isinstance(namespace, str):
            # Let _build report the bad namespace
            return True
        return priority.rank >= self._threshold_for(namespace).rank

    def _build(self, namespace: Any, priority: Priority, metadata: Mapping[str, Any] | None) -> _Item:
        if not isinstance(namespace, str) or not namespace.strip():
            raise ValueError(f"namespace must be a non-empty string, got {namespace!r}")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise TypeError(f"metadata must be a mapping, got {type(metadata).__name__}")

        attributes: AttributePairs = []
        seen: set[str] = set()
        for key, value in (metadata or {}).items():
            if value is None:
                continue
            attributes.append((str(key), str(value)))
            seen.add(str(key))

        cid = ""
        if self._context is not None:
            cid = self._context.current_trace_id() or ""
            # Context values never override explicit metadata
            for key, value in self._context.snapshot().items():
                if key not in seen:
                    attributes.append((key, value))
                    seen.add(key)
        if CALLER_KEY not in seen:
            attributes.append((CALLER_KEY, _caller_location()))

        event = Event(
            event_id=uuid.uuid4().hex,
            timestamp=time.time_ns() // 1_000_000,
            thread_id=threading.current_thread().name,
            priority=priority,
            namespace=namespace,
            aid=self._aid,
            cid=cid,
            config_tag=self._config_tag,
        )
        return event, attributes

    def _producer_error(self, namespace: Any, level: Any, error: Exception) -> None:
        with self._lock:
            self._counters["producer_errors"] += 1
        with internal_emission() as allowed:
            if not allowed:
                return
            self.log(
                _PRODUCER_ERROR_NAMESPACE,
                Priority.ERROR.value,
                {
                    "error_kind": ErrorKind.PRODUCER_ERROR.value,
                    "error": str(error),
                    "error_type": type(error).__name__,
                    "namespace": repr(namespace),
                    "level": repr(level),
                },
            )

    def _forward(self, event: Event, attributes: AttributePairs) -> None:
        try:
            self._sink.write(event, attributes)
        except Exception as e:
            with self._lock:
                self._counters["sink_errors"] += 1
            get_diagnostics_logger().warning(
                {
                    "event": "sink_write_failed",
                    "sink": self._sink.name,
                    "event_id": event.event_id,
                    "namespace": event.namespace,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return
        with self._lock:
            self._counters["forwarded"] += 1

    def _drain(self, deadline: float | None = None) -> None:
        while deadline is None or time.monotonic() < deadline:
            try:
                event, attributes = self._queue.get_nowait()
            except queue.Empty:
                return
            self._forward(event, attributes)

    def _run(self) -> None:
        while not self._stop.is_set():
            self._drain()
            self._stop.wait(self._flush_interval)
        self._drain(time.monotonic() + self._grace)

    def _discard_remaining(self) -> None:
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            with self._lock:
                self._counters["dropped_at_shutdown"] += dropped
            _system_logger.warning(
                {
                    "event": "event_logger_dropped_at_shutdown",
                    "count": dropped,
                    "message": f"Dropped {dropped} queued events at shutdown",
                }
            )
