"""Thread-local guard against recursive internal emission.

The pipeline emits a few events about itself (new trace started, producer
error). Emitting such an event runs through the same code that may want to
emit another one; the guard marks the thread while an internal event is in
flight so nested attempts are suppressed.
"""

from __future__ import annotations

__all__ = ["in_internal_emission", "internal_emission"]

import threading
from collections.abc import Iterator
from contextlib import contextmanager

_state = threading.local()


def in_internal_emission() -> bool:
    """Return True while this thread is emitting an internal event."""
    return getattr(_state, "active", False)


@contextmanager
def internal_emission() -> Iterator[bool]:
    """Mark the current thread as emitting an internal event.

    Yields:
        True if the caller may emit; False if the thread was already inside
        an internal emission and the nested event must be skipped.
    """
    if in_internal_emission():
        yield False
        return
    _state.active = True
    try:
        yield True
    finally:
        _state.active = False
