"""Durable persister: batches events into the event store.

A single worker thread owns the store's writer connection. Producers enqueue
into a bounded queue without blocking; the worker accumulates a batch and
flushes it when

- the batch reached batch_size, or
- flush_interval_seconds elapsed with at least one pending event, or
- shutdown was requested with pending events.

Each flush is one transaction: headers are inserted-or-ignored by event_id and
attributes are appended only for headers this flush actually inserted, so
redelivering an event is a no-op. A failed flush is rolled back, logged and
dropped; the worker keeps going.
"""

from __future__ import annotations

__all__ = ["DurablePersister"]

import queue
import threading
import time
from collections.abc import Iterable

from eventscope.config import PersisterConfig
from eventscope.constants import PERSISTER_POLL_SECONDS
from eventscope.exceptions import ConfigurationError, FormatError, PersistenceError
from eventscope.models import AttributePairs, Event
from eventscope.storage.store import EventStore, create_store
from eventscope.telemetry.system.system_logger import get_diagnostics_logger, get_system_logger
from eventscope.wire.codec import decode

_system_logger = get_system_logger()

# Upper bound for the worker to open the store during start()
_STARTUP_TIMEOUT_SECONDS = 30.0

_Item = tuple[Event, AttributePairs]


class DurablePersister:
    """Bounded intake queue plus one batching writer thread.

    Args:
        store: Backend the worker writes to.
        batch_size: Flush when this many events are pending.
        flush_interval_seconds: Flush pending events at least this often.
        queue_capacity: Intake queue size; a full queue drops events.
        shutdown_grace_seconds: Upper bound for the final drain and flush.
        poll_seconds: Queue wait per loop iteration.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        batch_size: int,
        flush_interval_seconds: float,
        queue_capacity: int,
        shutdown_grace_seconds: float,
        poll_seconds: float = PERSISTER_POLL_SECONDS,
    ) -> None:
        self._store = store
        self._batch_size = batch_size
        self._flush_interval = flush_interval_seconds
        self._grace = shutdown_grace_seconds
        self._poll = poll_seconds
        self._queue: queue.Queue[_Item] = queue.Queue(maxsize=queue_capacity)
        self._capacity = queue_capacity

        self._stop = threading.Event()
        self._ready = threading.Event()
        self._thread: threading.Thread | None = None
        self._startup_error: ConfigurationError | None = None
        self._closed = False
        self._stop_deadline = 0.0

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._counters = {
            "enqueued": 0,
            "dropped": 0,
            "dropped_at_shutdown": 0,
            "format_errors": 0,
            "batches_flushed": 0,
            "failed_batches": 0,
            "failed_events": 0,
            "events_written": 0,
            "duplicates_ignored": 0,
            "attributes_written": 0,
        }

    @classmethod
    def from_config(cls, config: PersisterConfig) -> "DurablePersister":
        """Build a persister and its store backend from config.

        Raises:
            ConfigurationError: If the store backend is not registered.
        """
        return cls(
            create_store(config.store, config.db_path),
            batch_size=config.batch_size,
            flush_interval_seconds=config.flush_interval_seconds,
            queue_capacity=config.queue_capacity,
            shutdown_grace_seconds=config.shutdown_grace_seconds,
        )

    @property
    def store(self) -> EventStore:
        return self._store

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker and wait until the store is open.

        Raises:
            ConfigurationError: If the store cannot be opened.
        """
        if self._thread is not None:
            return

        self._thread = threading.Thread(target=self._run, name="eventscope-persister", daemon=True)
        self._thread.start()
        if not self._ready.wait(_STARTUP_TIMEOUT_SECONDS):
            raise ConfigurationError("Event store did not open within the startup timeout")
        if self._startup_error is not None:
            self._thread.join()
            raise self._startup_error

        _system_logger.info(
            {
                "event": "persister_started",
                "batch_size": self._batch_size,
                "flush_interval_seconds": self._flush_interval,
                "message": "Durable persister started",
            }
        )

    def shutdown(self) -> None:
        """Stop intake, drain, and flush what remains within the grace period.

        Events still queued afterwards are dropped and counted.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._stop_deadline = time.monotonic() + self._grace
        self._stop.set()

        if self._thread is not None:
            # Worker bounds its own drain; allow one extra poll for the final flush
            self._thread.join(self._grace + self._poll + 1.0)
            if self._thread.is_alive():
                _system_logger.warning(
                    {
                        "event": "persister_shutdown_timeout",
                        "message": "Persister worker did not stop within the grace period",
                    }
                )
                return
        else:
            self._discard_remaining()

        stats = self.stats()
        _system_logger.info(
            {
                "event": "persister_stopped",
                "events_written": stats["events_written"],
                "dropped_at_shutdown": stats["dropped_at_shutdown"],
                "message": "Durable persister stopped",
            }
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def ingest(self, event: Event, attributes: Iterable[tuple[str, str]] = (), *, block: bool = False) -> bool:
        """Enqueue an event for persistence.

        Args:
            event: Event header.
            attributes: Ordered (key, value) pairs.
            block: Wait for queue space instead of dropping. Meant for
                replaying files, never for live producers.

        Returns:
            True if accepted, False if dropped (queue full or shut down).
        """
        item = (event, list(attributes))
        if block:
            return self._put_blocking(item)
        with self._lock:
            if self._closed:
                self._counters["dropped"] += 1
                return False
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                self._counters["dropped"] += 1
                return False
            self._counters["enqueued"] += 1
            self._in_flight += 1
        return True

    def ingest_line(self, line: str, *, block: bool = False) -> bool:
        """Decode a wire line and enqueue it.

        Lines that fail to decode are counted and skipped.

        Returns:
            True if accepted, False if undecodable or dropped.
        """
        try:
            event, attributes = decode(line)
        except FormatError as e:
            with self._lock:
                self._counters["format_errors"] += 1
            get_diagnostics_logger().info(
                {
                    "event": "wire_line_rejected",
                    "reason": e.reason,
                    "error": e.message,
                    "line": line[:200],
                }
            )
            return False
        return self.ingest(event, attributes, block=block)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every accepted event was flushed or dropped.

        Returns:
            True if idle, False on timeout.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout)

    def stats(self) -> dict[str, int]:
        """Return persister counters plus queue depth and capacity."""
        with self._lock:
            result = dict(self._counters)
        result["queue_depth"] = self._queue.qsize()
        result["queue_capacity"] = self._capacity
        return result

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            created = self._store.open()
        except ConfigurationError as e:
            self._startup_error = e
            self._ready.set()
            return
        if created:
            _system_logger.info(
                {
                    "event": "event_store_bootstrapped",
                    "tables_created": created,
                    "message": f"Created store tables: {', '.join(created)}",
                }
            )
        self._ready.set()

        batch: list[_Item] = []
        last_flush = time.monotonic()
        try:
            while not self._stop.is_set():
                try:
                    batch.append(self._queue.get(timeout=self._poll))
                except queue.Empty:
                    pass

                if len(batch) >= self._batch_size or (
                    batch and time.monotonic() - last_flush >= self._flush_interval
                ):
                    self._flush(batch)
                    batch = []
                    last_flush = time.monotonic()

            while time.monotonic() < self._stop_deadline:
                try:
                    batch.append(self._queue.get_nowait())
                except queue.Empty:
                    break
                if len(batch) >= self._batch_size:
                    self._flush(batch)
                    batch = []
            if batch:
                self._flush(batch)
            self._discard_remaining()
        finally:
            self._store.close()

    def _flush(self, batch: list[_Item]) -> None:
        try:
            result = self._store.write_batch(batch)
        except PersistenceError as e:
            self._batch_failed(batch, e.message)
            return
        except Exception as e:
            # Any backend failure costs the batch, never the worker
            self._batch_failed(batch, f"{type(e).__name__}: {e}")
            return

        with self._lock:
            self._counters["batches_flushed"] += 1
            self._counters["events_written"] += result.events_written
            self._counters["duplicates_ignored"] += result.duplicates
            self._counters["attributes_written"] += result.attributes_written
        self._mark_done(len(batch))

    def _batch_failed(self, batch: list[_Item], error: str) -> None:
        _system_logger.error(
            {
                "event": "batch_flush_failed",
                "batch_size": len(batch),
                "first_event_id": batch[0][0].event_id,
                "error": error,
                "message": f"Dropped batch of {len(batch)} events after rollback",
            }
        )
        with self._lock:
            self._counters["failed_batches"] += 1
            self._counters["failed_events"] += len(batch)
        self._mark_done(len(batch))

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
                    "event": "persister_dropped_at_shutdown",
                    "count": dropped,
                    "message": f"Dropped {dropped} queued events at shutdown",
                }
            )
            self._mark_done(dropped)

    def _put_blocking(self, item: _Item) -> bool:
        with self._lock:
            if self._closed:
                self._counters["dropped"] += 1
                return False
            self._in_flight += 1
        while True:
            try:
                self._queue.put(item, timeout=self._poll)
                break
            except queue.Full:
                if self._closed:
                    with self._lock:
                        self._counters["dropped"] += 1
                    self._mark_done(1)
                    return False
        with self._lock:
            self._counters["enqueued"] += 1
        if self._closed:
            # Shutdown began while waiting; the worker may have finished its drain
            if self._thread is not None:
                self._thread.join(self._grace + self._poll + 1.0)
            if self._thread is None or not self._thread.is_alive():
                self._discard_remaining()
        return True

    def _mark_done(self, count: int) -> None:
        with self._idle:
            self._in_flight -= count
            if self._in_flight <= 0:
                self._idle.notify_all()
