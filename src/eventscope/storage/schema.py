"""Event store schema and bootstrap.

Two tables joined by event_id:

    EVENT       one header row per event, primary key event_id
    EVENT_ATTR  zero or more key/value rows per event, surrogate key attr_id

There is no foreign key between them; attribute rows are written after their
header in the same transaction. Bootstrap only ever creates what is missing.
"""

from __future__ import annotations

__all__ = [
    "EVENT_ATTR_SCHEMA",
    "EVENT_SCHEMA",
    "INDEX_SCHEMA",
    "bootstrap_schema",
]

import sqlite3

from eventscope.constants import EVENT_ATTR_TABLE, EVENT_TABLE

EVENT_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {EVENT_TABLE} (
    event_id TEXT PRIMARY KEY,
    config_file TEXT,
    timestamp INTEGER NOT NULL,
    thread_id TEXT,
    priority TEXT NOT NULL,
    namespace TEXT NOT NULL,
    aid TEXT,
    cid TEXT,
    is_stable INTEGER NOT NULL DEFAULT 1
);
"""

EVENT_ATTR_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {EVENT_ATTR_TABLE} (
    attr_id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT
);
"""

INDEX_SCHEMA = f"""
CREATE INDEX IF NOT EXISTS ix_event_timestamp ON {EVENT_TABLE}(timestamp);
CREATE INDEX IF NOT EXISTS ix_event_namespace ON {EVENT_TABLE}(namespace);
CREATE INDEX IF NOT EXISTS ix_event_aid ON {EVENT_TABLE}(aid);
CREATE INDEX IF NOT EXISTS ix_event_cid ON {EVENT_TABLE}(cid);
CREATE INDEX IF NOT EXISTS ix_event_is_stable ON {EVENT_TABLE}(is_stable);
CREATE INDEX IF NOT EXISTS ix_event_attr_event_id ON {EVENT_ATTR_TABLE}(event_id);
CREATE INDEX IF NOT EXISTS ix_event_attr_key ON {EVENT_ATTR_TABLE}(key);
"""

_TABLES: tuple[tuple[str, str], ...] = (
    (EVENT_TABLE, EVENT_SCHEMA),
    (EVENT_ATTR_TABLE, EVENT_ATTR_SCHEMA),
)


def _existing_tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {str(row[0]).upper() for row in rows}


def bootstrap_schema(conn: sqlite3.Connection) -> list[str]:
    """Create the event tables that do not exist yet, plus their indexes.

    Existing tables are never altered or dropped.

    Args:
        conn: Open connection to the store.

    Returns:
        Names of the tables created by this call.
    """
    existing = _existing_tables(conn)
    created: list[str] = []
    for name, ddl in _TABLES:
        if name.upper() not in existing:
            conn.executescript(ddl)
            created.append(name)
    conn.executescript(INDEX_SCHEMA)
    conn.commit()
    return created
