"""Read path over stored events.

Structure:
    filters.py      - EventFilter / AttributeFilter and SQL predicates
    results.py      - Page, count and detail envelopes
    repository.py   - QueryRepository
"""

from eventscope.query.filters import AttributeFilter, EventFilter
from eventscope.query.repository import QueryRepository
from eventscope.query.results import AttributePage, CountResult, EventDetail, EventPage

__all__ = [
    "AttributeFilter",
    "AttributePage",
    "CountResult",
    "EventDetail",
    "EventFilter",
    "EventPage",
    "QueryRepository",
]
