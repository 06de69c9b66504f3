"""Shared fixtures for eventscope tests."""

import itertools
import threading
import uuid
from pathlib import Path

import pytest

from eventscope.logger.sinks import EventSink
from eventscope.models import Event, Priority
from eventscope.storage.store import SQLiteEventStore

_counter = itertools.count()


def build_event(**overrides) -> Event:
    """Build an event with unique id and sensible defaults."""
    fields = {
        "event_id": uuid.uuid4().hex,
        "timestamp": 1_700_000_000_000 + next(_counter),
        "thread_id": "MainThread",
        "priority": Priority.INFO,
        "namespace": "app.test",
        "aid": "agent-1",
        "cid": "",
        "config_tag": "C:AP",
    }
    fields.update(overrides)
    return Event(**fields)


@pytest.fixture
def make_event():
    """Factory fixture for events."""
    return build_event


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path of a not yet created event database."""
    return tmp_path / "data" / "events.db"


@pytest.fixture
def store(db_path: Path):
    """Opened SQLite event store, closed after the test."""
    s = SQLiteEventStore(db_path)
    s.open()
    yield s
    s.close()


class RecordingSink(EventSink):
    """Collects events in memory."""

    name = "recording"

    def __init__(self, fail: bool = False) -> None:
        self.events = []
        self.fail = fail
        self.opened = False
        self.closed = False
        self._lock = threading.Lock()

    def open(self) -> None:
        self.opened = True

    def write(self, event, attributes) -> None:
        if self.fail:
            raise OSError("sink down")
        with self._lock:
            self.events.append((event, dict(attributes)))

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sink() -> RecordingSink:
    """In-memory sink."""
    return RecordingSink()


@pytest.fixture
def failing_sink() -> RecordingSink:
    """Sink whose every write raises OSError."""
    return RecordingSink(fail=True)
