"""Thread-local correlation scopes.

Groups the events captured on one thread into a logical unit of work. The
first scope entered on a thread starts a new trace id; nested scopes inherit
it. Values put into a scope are visible to that scope and to every scope
entered inside it, and disappear when the scope exits. When the outermost
scope exits the thread's context is cleared.

Every producer-facing call is non-blocking and never raises. Invalid input
is counted in stats() and ignored.

Usage:
    ctx = CorrelationContext()
    with ctx.scope("http.request") as trace_id:
        ctx.put("user", "alice")
        ...
"""

from __future__ import annotations

__all__ = [
    "ContextSnapshot",
    "CorrelationContext",
    "ScopeEmitter",
]

import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from eventscope.constants import (
    CONTEXT_TTL_CHECK_THROTTLE_SECONDS,
    DEFAULT_CONTEXT_TTL_SECONDS,
    TRACE_ID_KEY,
)
from eventscope.context.reentrancy import internal_emission
from eventscope.telemetry.system.system_logger import get_diagnostics_logger

# (namespace, level, metadata) - same shape as the producer contract
ScopeEmitter = Callable[[str, str, dict[str, str]], None]

T = TypeVar("T")

_SCOPE_NAMESPACE = "eventscope.context.scope"


@dataclass
class _Frame:
    name: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class _ThreadState:
    frames: list[_Frame] = field(default_factory=list)
    # Values put while no scope is open; discarded on the next outermost entry
    unscoped: dict[str, str] = field(default_factory=dict)
    trace_id: str | None = None
    last_access: float = 0.0
    last_ttl_check: float = 0.0


@dataclass(frozen=True)
class ContextSnapshot:
    """Captured copy of one thread's context, for handing to another thread."""

    trace_id: str | None
    frames: tuple[tuple[str, tuple[tuple[str, str], ...]], ...]
    unscoped: tuple[tuple[str, str], ...]


class CorrelationContext:
    """Thread-local stack of named correlation scopes.

    Args:
        ttl_seconds: A thread whose scopes were not touched for this long is
            treated as leaked and its context is cleared.
        emitter: Optional callable receiving one internal event per new trace.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_CONTEXT_TTL_SECONDS,
        emitter: ScopeEmitter | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._emitter = emitter
        self._clock = clock
        self._local = threading.local()
        self._lock = threading.Lock()
        self._contexts_created = 0
        self._ttl_cleanups = 0
        self._invalid_calls = 0
        self._mismatched_exits = 0
        self._active_contexts = 0
        self._max_context_size = 0

    def set_emitter(self, emitter: ScopeEmitter | None) -> None:
        """Attach the callable that receives new-trace events."""
        self._emitter = emitter

    # ------------------------------------------------------------------
    # Scope lifecycle
    # ------------------------------------------------------------------

    def enter_scope(self, name: str) -> str:
        """Enter a named scope on the current thread.

        Args:
            name: Non-empty scope name.

        Returns:
            The trace id of the scope. Empty string if the name was invalid
            and no scope is open.
        """
        state = self._state()
        if not isinstance(name, str) or not name:
            self._record_invalid("enter_scope", name)
            return state.trace_id or ""

        self._expire_if_stale(state)
        new_trace = not state.frames
        if new_trace:
            state.unscoped.clear()
            state.trace_id = uuid.uuid4().hex
            with self._lock:
                self._contexts_created += 1
                self._active_contexts += 1

        state.frames.append(_Frame(name))
        state.last_access = self._clock()
        trace_id = state.trace_id or ""

        if new_trace:
            self._emit_new_trace(name, trace_id)
        return trace_id

    def exit_scope(self, name: str) -> None:
        """Exit the most recent scope with this name.

        Scopes opened after it are popped too. Unknown names are a no-op.
        Exiting the outermost scope clears the thread's context.
        """
        state = self._state()
        if not isinstance(name, str) or not name:
            self._record_invalid("exit_scope", name)
            return

        for index in range(len(state.frames) - 1, -1, -1):
            if state.frames[index].name == name:
                break
        else:
            with self._lock:
                self._mismatched_exits += 1
            return

        del state.frames[index:]
        state.last_access = self._clock()
        if not state.frames:
            self._clear(state)

    @contextmanager
    def scope(self, name: str) -> Iterator[str]:
        """Context manager form of enter_scope/exit_scope.

        Yields:
            The scope's trace id.
        """
        trace_id = self.enter_scope(name)
        try:
            yield trace_id
        finally:
            self.exit_scope(name)

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def put(self, key: str, value: Any) -> None:
        """Store a value in the current scope.

        With no scope open the value lands in an unscoped frame that is
        discarded when the next outermost scope is entered. None keys or
        values are ignored.
        """
        if not isinstance(key, str) or not key or value is None:
            self._record_invalid("put", key)
            return

        state = self._state()
        self._expire_if_stale(state)
        target = state.frames[-1].values if state.frames else state.unscoped
        target[key] = str(value)
        state.last_access = self._clock()

        size = len(self._visible(state))
        with self._lock:
            if size > self._max_context_size:
                self._max_context_size = size

    def get(self, key: str) -> str | None:
        """Return the innermost visible value for a key, or None."""
        if not isinstance(key, str):
            self._record_invalid("get", key)
            return None

        state = self._state()
        self._expire_if_stale(state)
        if key == TRACE_ID_KEY and state.frames:
            return state.trace_id
        for frame in reversed(state.frames):
            if key in frame.values:
                return frame.values[key]
        return state.unscoped.get(key)

    def current_trace_id(self) -> str | None:
        """Return the trace id of the open scope stack, or None."""
        state = self._state()
        self._expire_if_stale(state)
        return state.trace_id if state.frames else None

    def depth(self) -> int:
        """Return the number of open scopes on this thread."""
        return len(self._state().frames)

    def snapshot(self) -> dict[str, str]:
        """Return a merged copy of every value visible on this thread.

        Inner scopes shadow outer ones. Includes trace_id while a scope is open.
        """
        state = self._state()
        self._expire_if_stale(state)
        return self._visible(state)

    # ------------------------------------------------------------------
    # Propagation to other threads
    # ------------------------------------------------------------------

    def capture(self) -> ContextSnapshot:
        """Capture this thread's context for restoring on another thread."""
        state = self._state()
        return ContextSnapshot(
            trace_id=state.trace_id if state.frames else None,
            frames=tuple((f.name, tuple(f.values.items())) for f in state.frames),
            unscoped=tuple(state.unscoped.items()),
        )

    def restore(self, snapshot: ContextSnapshot) -> None:
        """Replace this thread's context with a captured one."""
        state = self._state()
        had_frames = bool(state.frames)
        state.frames = [_Frame(name, dict(values)) for name, values in snapshot.frames]
        state.unscoped = dict(snapshot.unscoped)
        state.trace_id = snapshot.trace_id if state.frames else None
        state.last_access = self._clock()

        if had_frames != bool(state.frames):
            with self._lock:
                self._active_contexts += 1 if state.frames else -1

    def wrap(self, fn: Callable[..., T]) -> Callable[..., T]:
        """Bind the caller's current context to fn.

        The returned callable runs fn under the captured context on whatever
        thread invokes it, then puts that thread's own context back.
        """
        captured = self.capture()

        def wrapped(*args: Any, **kwargs: Any) -> T:
            previous = self.capture()
            self.restore(captured)
            try:
                return fn(*args, **kwargs)
            finally:
                self.restore(previous)

        return wrapped

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Return context counters."""
        with self._lock:
            return {
                "contexts_created": self._contexts_created,
                "ttl_cleanups": self._ttl_cleanups,
                "invalid_calls": self._invalid_calls,
                "mismatched_exits": self._mismatched_exits,
                "active_contexts": self._active_contexts,
                "max_context_size": self._max_context_size,
            }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _state(self) -> _ThreadState:
        state = getattr(self._local, "state", None)
        if state is None:
            state = _ThreadState()
            self._local.state = state
        return state

    def _visible(self, state: _ThreadState) -> dict[str, str]:
        merged = dict(state.unscoped)
        for frame in state.frames:
            merged.update(frame.values)
        if state.frames and state.trace_id:
            merged[TRACE_ID_KEY] = state.trace_id
        return merged

    def _clear(self, state: _ThreadState) -> None:
        state.frames.clear()
        state.unscoped.clear()
        state.trace_id = None
        with self._lock:
            self._active_contexts -= 1

    def _expire_if_stale(self, state: _ThreadState) -> None:
        if not state.frames:
            return
        now = self._clock()
        if now - state.last_ttl_check < CONTEXT_TTL_CHECK_THROTTLE_SECONDS:
            return
        state.last_ttl_check = now
        if now - state.last_access > self._ttl:
            get_diagnostics_logger().warning(
                {
                    "event": "correlation_context_expired",
                    "trace_id": state.trace_id,
                    "open_scopes": [f.name for f in state.frames],
                    "message": "Leaked correlation scopes cleared after TTL",
                }
            )
            self._clear(state)
            with self._lock:
                self._ttl_cleanups += 1

    def _record_invalid(self, operation: str, value: object) -> None:
        with self._lock:
            self._invalid_calls += 1
        get_diagnostics_logger().debug(
            {
                "event": "correlation_invalid_call",
                "operation": operation,
                "value": repr(value),
            }
        )

    def _emit_new_trace(self, name: str, trace_id: str) -> None:
        emitter = self._emitter
        if emitter is None:
            return
        with internal_emission() as allowed:
            if not allowed:
                return
            try:
                emitter(_SCOPE_NAMESPACE, "DEBUG", {"scope": name, TRACE_ID_KEY: trace_id})
            except Exception as e:
                get_diagnostics_logger().warning(
                    {
                        "event": "scope_event_failed",
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
