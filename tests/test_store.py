"""Tests for the SQLite event store and schema bootstrap."""

import sqlite3

import pytest

from eventscope.exceptions import ConfigurationError, PersistenceError, QueryError
from eventscope.storage.schema import bootstrap_schema
from eventscope.storage.store import SQLiteEventStore, create_store


class TestBootstrap:
    """Tests for bootstrap_schema()."""

    def test_creates_missing_tables_once(self, tmp_path):
        # Arrange
        conn = sqlite3.connect(str(tmp_path / "db.sqlite"))

        # Act
        first = bootstrap_schema(conn)
        second = bootstrap_schema(conn)

        # Assert
        assert sorted(first) == ["EVENT", "EVENT_ATTR"]
        assert second == []
        conn.close()

    def test_open_reports_created_tables(self, db_path):
        # Arrange
        store = SQLiteEventStore(db_path)

        # Act
        created = store.open()
        store.close()
        reopened = SQLiteEventStore(db_path)
        created_again = reopened.open()
        reopened.close()

        # Assert
        assert sorted(created) == ["EVENT", "EVENT_ATTR"]
        assert created_again == []
        assert db_path.exists()

    def test_unopenable_path_is_configuration_error(self, tmp_path):
        # Arrange
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = SQLiteEventStore(blocker / "events.db")

        # Act / Assert
        with pytest.raises(ConfigurationError):
            store.open()


class TestWriteBatch:
    """Tests for write_batch()."""

    def test_writes_events_and_attributes(self, store, make_event):
        # Arrange
        event = make_event()

        # Act
        result = store.write_batch([(event, [("a", "1"), ("b", "2")])])

        # Assert
        assert result.events_written == 1
        assert result.attributes_written == 2
        row = store.fetch_one("SELECT * FROM EVENT WHERE event_id = ?", [event.event_id])
        assert row["namespace"] == "app.test"
        assert row["is_stable"] == 1

    def test_redelivery_is_ignored(self, store, make_event):
        # Arrange
        event = make_event()
        store.write_batch([(event, [("a", "1")])])

        # Act
        result = store.write_batch([(event, [("a", "1")]), (make_event(), [])])

        # Assert
        assert result.duplicates == 1
        assert result.events_written == 1
        attrs = store.fetch_all("SELECT key FROM EVENT_ATTR WHERE event_id = ?", [event.event_id])
        assert len(attrs) == 1

    def test_write_before_open_raises(self, db_path, make_event):
        # Arrange
        store = SQLiteEventStore(db_path)

        # Act / Assert
        with pytest.raises(PersistenceError):
            store.write_batch([(make_event(), [])])

    def test_failed_batch_rolls_back(self, store, make_event):
        # Arrange
        store._writer.execute("DROP TABLE EVENT_ATTR")
        good = make_event()

        # Act
        with pytest.raises(PersistenceError):
            store.write_batch([(good, [("a", "1")])])

        # Assert
        assert store.fetch_one("SELECT * FROM EVENT WHERE event_id = ?", [good.event_id]) is None

    def test_out_of_range_value_rolls_back(self, store, make_event):
        # Arrange
        good = make_event()
        oversized = make_event(timestamp=2**64)

        # Act
        with pytest.raises(PersistenceError):
            store.write_batch([(good, []), (oversized, [])])

        # Assert
        assert store.fetch_one("SELECT * FROM EVENT WHERE event_id = ?", [good.event_id]) is None


class TestReads:
    """Tests for the read path."""

    def test_bad_sql_is_query_error(self, store):
        with pytest.raises(QueryError) as exc_info:
            store.fetch_all("SELECT nope FROM EVENT")
        assert exc_info.value.code == "QUERY_FAILED"


class TestRegistry:
    """Tests for create_store()."""

    def test_known_backend(self, db_path):
        assert isinstance(create_store("sqlite", str(db_path)), SQLiteEventStore)

    def test_unknown_backend(self, db_path):
        with pytest.raises(ConfigurationError, match="Unknown store backend"):
            create_store("postgres", str(db_path))
