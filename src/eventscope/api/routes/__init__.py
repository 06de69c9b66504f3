"""API route modules.

Route organization:
- events: Event queries (list, count, by id)
- attributes: Attribute row queries
- stats: Pipeline counters
"""

from . import attributes, events, stats

__all__ = [
    "attributes",
    "events",
    "stats",
]
