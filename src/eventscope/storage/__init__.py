"""Durable event storage.

Structure:
    schema.py      - EVENT / EVENT_ATTR tables and bootstrap
    store.py       - EventStore interface, SQLite backend, STORE_REGISTRY
    persister.py   - DurablePersister (bounded queue + batching writer thread)

Import directly from submodules:
    from eventscope.storage.persister import DurablePersister
"""

__all__: list[str] = []
