"""Storage backends for the event store.

All access goes through the EventStore interface. The persister worker owns
the single writer connection (open/write_batch/close run on that thread);
readers get a fresh connection per operation so the API can query from any
thread while the worker writes.

Backends are selected by name through STORE_REGISTRY.
"""

from __future__ import annotations

__all__ = [
    "STORE_REGISTRY",
    "EventStore",
    "SQLiteEventStore",
    "WriteResult",
    "create_store",
]

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from eventscope.constants import EVENT_ATTR_TABLE, EVENT_TABLE, SQLITE_BUSY_TIMEOUT_SECONDS
from eventscope.exceptions import ConfigurationError, PersistenceError, QueryError
from eventscope.models import AttributePairs, Event
from eventscope.storage.schema import bootstrap_schema
from eventscope.telemetry.system.system_logger import get_system_logger

_INSERT_EVENT = f"""
INSERT OR IGNORE INTO {EVENT_TABLE}
    (event_id, config_file, timestamp, thread_id, priority, namespace, aid, cid, is_stable)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_INSERT_ATTR = f"INSERT INTO {EVENT_ATTR_TABLE} (event_id, key, value) VALUES (?, ?, ?)"


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one committed batch."""

    events_written: int
    duplicates: int
    attributes_written: int


class EventStore(ABC):
    """Abstract event store."""

    @abstractmethod
    def open(self) -> list[str]:
        """Open the writer connection and bootstrap the schema.

        Returns:
            Names of tables created during bootstrap.

        Raises:
            ConfigurationError: If the store cannot be opened.
        """

    @abstractmethod
    def write_batch(self, batch: Sequence[tuple[Event, AttributePairs]]) -> WriteResult:
        """Write a batch in one transaction.

        Raises:
            PersistenceError: If the transaction failed and was rolled back.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the writer connection."""

    @abstractmethod
    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a read query and return all rows.

        Raises:
            QueryError: If the store could not answer.
        """

    @abstractmethod
    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Run a read query and return the first row, if any.

        Raises:
            QueryError: If the store could not answer.
        """


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteEventStore(EventStore):
    """SQLite implementation; single file, WAL journal so readers don't block the writer."""

    def __init__(self, path: str | Path, *, timeout_sec: float = SQLITE_BUSY_TIMEOUT_SECONDS) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec
        self._writer: sqlite3.Connection | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _read_cursor(self) -> Iterator[sqlite3.Cursor]:
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise QueryError(
                f"Cannot open event store: {e}",
                code="STORE_UNAVAILABLE",
                details={"path": str(self._path)},
            ) from e
        try:
            yield conn.cursor()
        except sqlite3.Error as e:
            raise QueryError(f"Event store query failed: {e}", code="QUERY_FAILED") from e
        finally:
            conn.close()

    def open(self) -> list[str]:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = self._connect()
            return bootstrap_schema(self._writer)
        except (OSError, sqlite3.Error) as e:
            if self._writer is not None:
                self._writer.close()
                self._writer = None
            raise ConfigurationError(f"Cannot open event store at {self._path}: {e}") from e

    def write_batch(self, batch: Sequence[tuple[Event, AttributePairs]]) -> WriteResult:
        if self._writer is None:
            raise PersistenceError("Event store is not open", batch_size=len(batch))

        conn = self._writer
        written = duplicates = attrs = 0
        try:
            cur = conn.cursor()
            for event, attributes in batch:
                cur.execute(
                    _INSERT_EVENT,
                    (
                        event.event_id,
                        event.config_tag,
                        event.timestamp,
                        event.thread_id,
                        event.priority.value,
                        event.namespace,
                        event.aid,
                        event.cid,
                        1 if event.is_stable else 0,
                    ),
                )
                if cur.rowcount != 1:
                    # Redelivery of an already stored event
                    duplicates += 1
                    continue
                written += 1
                if attributes:
                    cur.executemany(_INSERT_ATTR, [(event.event_id, k, v) for k, v in attributes])
                    attrs += len(attributes)
            conn.commit()
        except Exception as e:
            # Bad values (e.g. integers beyond SQLite's 64-bit range) raise
            # OverflowError or ValueError rather than sqlite3.Error
            conn.rollback()
            raise PersistenceError(f"Batch write failed: {e}", batch_size=len(batch)) from e

        return WriteResult(events_written=written, duplicates=duplicates, attributes_written=attrs)

    def close(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.close()
        except sqlite3.Error as e:
            get_system_logger().warning(
                {
                    "event": "event_store_close_failed",
                    "path": str(self._path),
                    "error": str(e),
                }
            )
        self._writer = None

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        with self._read_cursor() as cur:
            cur.execute(sql, tuple(params))
            return [dict(row) for row in cur.fetchall()]

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        with self._read_cursor() as cur:
            cur.execute(sql, tuple(params))
            row = cur.fetchone()
        return dict(row) if row is not None else None


STORE_REGISTRY: dict[str, Callable[[str], EventStore]] = {
    "sqlite": SQLiteEventStore,
}


def create_store(name: str, path: str) -> EventStore:
    """Build a store backend by registered name.

    Raises:
        ConfigurationError: If no backend is registered under the name.
    """
    factory = STORE_REGISTRY.get(name)
    if factory is None:
        known = ", ".join(sorted(STORE_REGISTRY))
        raise ConfigurationError(f"Unknown store backend '{name}' (known: {known})")
    return factory(path)
