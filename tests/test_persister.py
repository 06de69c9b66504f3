"""Tests for the durable persister (intake queue plus batching writer).

Uses AAA pattern (Arrange-Act-Assert) for clarity.
"""

import threading
import time

import pytest

from eventscope.config import PersisterConfig
from eventscope.exceptions import ConfigurationError, PersistenceError
from eventscope.storage.persister import DurablePersister
from eventscope.storage.store import SQLiteEventStore, WriteResult
from eventscope.wire.codec import encode


def make_persister(store, **overrides) -> DurablePersister:
    options = {
        "batch_size": 50,
        "flush_interval_seconds": 0.05,
        "queue_capacity": 1000,
        "shutdown_grace_seconds": 2.0,
        "poll_seconds": 0.01,
    }
    options.update(overrides)
    return DurablePersister(store, **options)


class FlakyStore(SQLiteEventStore):
    """Store whose first write fails."""

    def __init__(self, path):
        super().__init__(path)
        self.calls = 0

    def write_batch(self, batch) -> WriteResult:
        self.calls += 1
        if self.calls == 1:
            raise PersistenceError("disk full", batch_size=len(batch))
        return super().write_batch(batch)


class ExplodingStore(SQLiteEventStore):
    """Store whose first write raises something other than PersistenceError."""

    def __init__(self, path):
        super().__init__(path)
        self.calls = 0

    def write_batch(self, batch) -> WriteResult:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("driver bug")
        return super().write_batch(batch)


def count_events(db_path) -> int:
    reader = SQLiteEventStore(db_path)
    return reader.fetch_one("SELECT COUNT(*) AS n FROM EVENT")["n"]


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    """Tests for start/shutdown."""

    def test_start_bootstraps_store(self, db_path):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))

        # Act
        persister.start()
        running = persister.is_running
        persister.shutdown()

        # Assert
        assert running is True
        assert persister.is_running is False
        assert count_events(db_path) == 0

    def test_start_surfaces_store_errors(self, tmp_path):
        # Arrange
        blocker = tmp_path / "file"
        blocker.write_text("x")
        persister = make_persister(SQLiteEventStore(blocker / "events.db"))

        # Act / Assert
        with pytest.raises(ConfigurationError):
            persister.start()

    def test_from_config(self, db_path):
        # Arrange
        config = PersisterConfig(db_path=str(db_path), batch_size=7)

        # Act
        persister = DurablePersister.from_config(config)

        # Assert
        assert isinstance(persister.store, SQLiteEventStore)
        assert persister.store.path == db_path

    def test_shutdown_flushes_pending_events(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), batch_size=1000, flush_interval_seconds=60)
        persister.start()
        for _ in range(25):
            persister.ingest(make_event(), [("k", "v")])

        # Act
        persister.shutdown()

        # Assert
        stats = persister.stats()
        assert stats["events_written"] == 25
        assert stats["attributes_written"] == 25
        assert count_events(db_path) == 25

    def test_ingest_after_shutdown_is_dropped(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))
        persister.start()
        persister.shutdown()

        # Act
        accepted = persister.ingest(make_event())

        # Assert
        assert accepted is False
        assert persister.stats()["dropped"] == 1

    def test_shutdown_without_start_counts_queued_events(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))
        persister.ingest(make_event())
        persister.ingest(make_event())

        # Act
        persister.shutdown()

        # Assert
        assert persister.stats()["dropped_at_shutdown"] == 2
        assert persister.wait_idle(0.1) is True


# =============================================================================
# Intake
# =============================================================================


class TestIntake:
    """Tests for ingest/ingest_line."""

    def test_full_queue_drops_and_counts(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), queue_capacity=3)

        # Act
        results = [persister.ingest(make_event()) for _ in range(5)]

        # Assert
        assert results == [True, True, True, False, False]
        stats = persister.stats()
        assert stats["enqueued"] == 3
        assert stats["dropped"] == 2
        assert stats["queue_depth"] == 3
        persister.shutdown()

    def test_ingest_line_decodes_wire_format(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))
        persister.start()
        event = make_event(cid="T1")

        # Act
        accepted = persister.ingest_line(encode(event, [("path", "/tmp/x")]) + "\n")
        persister.wait_idle(5)
        persister.shutdown()

        # Assert
        assert accepted is True
        reader = SQLiteEventStore(db_path)
        row = reader.fetch_one("SELECT cid FROM EVENT WHERE event_id = ?", [event.event_id])
        assert row == {"cid": "T1"}

    def test_malformed_line_is_counted_and_skipped(self, db_path):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))

        # Act
        accepted = persister.ingest_line("not a wire line")

        # Assert
        assert accepted is False
        assert persister.stats()["format_errors"] == 1
        assert persister.stats()["enqueued"] == 0
        persister.shutdown()

    def test_out_of_range_timestamp_line_is_malformed(self, db_path):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))

        # Act
        accepted = persister.ingest_line("C:AP | 99999999999999999999 | main | INFO | a.b | EID=x1")

        # Assert
        assert accepted is False
        assert persister.stats()["format_errors"] == 1
        assert persister.stats()["enqueued"] == 0
        persister.shutdown()

    def test_redelivered_line_is_stored_once(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))
        persister.start()
        line = encode(make_event(), [("k", "v")])

        # Act
        for _ in range(3):
            persister.ingest_line(line)
            persister.wait_idle(5)
        persister.shutdown()

        # Assert
        stats = persister.stats()
        assert stats["events_written"] == 1
        assert stats["duplicates_ignored"] == 2
        assert count_events(db_path) == 1

    def test_concurrent_producers(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), queue_capacity=10_000)
        persister.start()

        def produce():
            for _ in range(200):
                persister.ingest(make_event())

        # Act
        threads = [threading.Thread(target=produce) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        idle = persister.wait_idle(10)
        persister.shutdown()

        # Assert
        assert idle is True
        assert count_events(db_path) == 800


# =============================================================================
# Batching and failures
# =============================================================================


class TestBatching:
    """Tests for batch flushing."""

    def test_full_batch_flushes_without_waiting_for_interval(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), batch_size=10, flush_interval_seconds=60)
        persister.start()

        # Act
        for _ in range(10):
            persister.ingest(make_event())
        idle = persister.wait_idle(5)

        # Assert
        assert idle is True
        assert persister.stats()["batches_flushed"] == 1
        persister.shutdown()

    def test_failed_batch_is_counted_and_worker_continues(self, db_path, make_event):
        # Arrange
        store = FlakyStore(db_path)
        persister = make_persister(store, batch_size=5, flush_interval_seconds=60)
        persister.start()

        # Act
        for _ in range(10):
            persister.ingest(make_event())
        persister.wait_idle(5)
        persister.shutdown()

        # Assert
        stats = persister.stats()
        assert stats["failed_batches"] == 1
        assert stats["failed_events"] == 5
        assert stats["events_written"] == 5

    def test_out_of_range_event_does_not_stop_worker(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), batch_size=1)
        persister.start()

        # Act
        persister.ingest(make_event(timestamp=2**64))
        persister.ingest(make_event())
        idle = persister.wait_idle(5)
        alive = persister.is_running
        persister.shutdown()

        # Assert
        assert idle is True
        assert alive is True
        stats = persister.stats()
        assert stats["failed_batches"] == 1
        assert stats["events_written"] == 1
        assert count_events(db_path) == 1

    def test_unexpected_store_error_does_not_stop_worker(self, db_path, make_event):
        # Arrange
        persister = make_persister(ExplodingStore(db_path), batch_size=1)
        persister.start()

        # Act
        persister.ingest(make_event())
        persister.ingest(make_event())
        idle = persister.wait_idle(5)
        alive = persister.is_running
        persister.shutdown()

        # Assert
        assert idle is True
        assert alive is True
        stats = persister.stats()
        assert stats["failed_events"] == 1
        assert stats["events_written"] == 1


class TestBlockingIntake:
    """Tests for ingest(block=True) used by file replay."""

    def test_blocking_intake_waits_for_space(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path), queue_capacity=2, batch_size=2)
        persister.start()

        # Act
        results = [persister.ingest(make_event(), block=True) for _ in range(20)]
        persister.shutdown()

        # Assert
        assert all(results)
        assert persister.stats()["dropped"] == 0
        assert count_events(db_path) == 20

    def test_blocking_intake_after_shutdown_is_dropped(self, db_path, make_event):
        # Arrange
        persister = make_persister(SQLiteEventStore(db_path))
        persister.shutdown()

        # Act
        accepted = persister.ingest(make_event(), block=True)

        # Assert
        assert accepted is False
        assert persister.stats()["dropped"] == 1

    def test_put_landing_after_final_drain_is_discarded(self, db_path, make_event):
        # Arrange (not started: shutdown drains on the calling thread)
        persister = make_persister(SQLiteEventStore(db_path), queue_capacity=1)
        persister.ingest(make_event())
        producer = threading.Thread(target=persister.ingest, args=(make_event(),), kwargs={"block": True})
        producer.start()
        time.sleep(0.05)

        # Act
        persister.shutdown()
        producer.join(5)

        # Assert
        stats = persister.stats()
        assert persister.wait_idle(2) is True
        assert stats["queue_depth"] == 0
        assert stats["dropped"] + stats["dropped_at_shutdown"] == 2
