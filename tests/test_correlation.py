"""Tests for thread-local correlation scopes.

Uses AAA pattern (Arrange-Act-Assert) for clarity.
"""

import threading
from unittest.mock import MagicMock

import pytest

from eventscope.context.correlation import CorrelationContext
from eventscope.context.reentrancy import in_internal_emission, internal_emission


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def ctx() -> CorrelationContext:
    return CorrelationContext()


# =============================================================================
# Scope lifecycle
# =============================================================================


class TestScopes:
    """Tests for enter/exit and trace id assignment."""

    def test_outermost_scope_starts_a_trace(self, ctx):
        # Act
        trace_id = ctx.enter_scope("request")

        # Assert
        assert trace_id
        assert ctx.current_trace_id() == trace_id
        assert ctx.get("trace_id") == trace_id
        assert ctx.depth() == 1

    def test_nested_scopes_inherit_the_trace(self, ctx):
        # Arrange
        outer = ctx.enter_scope("request")

        # Act
        inner = ctx.enter_scope("db")

        # Assert
        assert inner == outer
        assert ctx.depth() == 2

    def test_values_visible_inward_and_gone_after_exit(self, ctx):
        # Arrange
        ctx.enter_scope("request")
        ctx.put("user", "alice")
        ctx.enter_scope("db")
        ctx.put("table", "orders")

        # Act
        inner_view = ctx.snapshot()
        ctx.exit_scope("db")
        outer_view = ctx.snapshot()

        # Assert
        assert inner_view["user"] == "alice"
        assert inner_view["table"] == "orders"
        assert "table" not in outer_view
        assert outer_view["user"] == "alice"

    def test_inner_value_shadows_outer(self, ctx):
        # Arrange
        ctx.enter_scope("a")
        ctx.put("k", "outer")
        ctx.enter_scope("b")
        ctx.put("k", "inner")

        # Act / Assert
        assert ctx.get("k") == "inner"
        ctx.exit_scope("b")
        assert ctx.get("k") == "outer"

    def test_outermost_exit_clears_everything(self, ctx):
        # Arrange
        ctx.enter_scope("request")
        ctx.put("user", "alice")

        # Act
        ctx.exit_scope("request")

        # Assert
        assert ctx.current_trace_id() is None
        assert ctx.get("user") is None
        assert ctx.get("trace_id") is None
        assert ctx.snapshot() == {}

    def test_sequential_scopes_are_isolated(self, ctx):
        # Act
        seen = []
        for i in range(3):
            with ctx.scope("job") as trace_id:
                leaked = ctx.get("step")
                ctx.put("step", str(i))
                seen.append((trace_id, leaked))

        # Assert
        assert [leaked for _, leaked in seen] == [None, None, None]
        assert len({trace_id for trace_id, _ in seen}) == 3

    def test_exit_pops_scopes_opened_after_the_named_one(self, ctx):
        # Arrange
        ctx.enter_scope("a")
        ctx.enter_scope("b")
        ctx.enter_scope("c")

        # Act
        ctx.exit_scope("b")

        # Assert
        assert ctx.depth() == 1

    def test_unknown_exit_is_counted_and_ignored(self, ctx):
        # Arrange
        ctx.enter_scope("a")

        # Act
        ctx.exit_scope("nope")

        # Assert
        assert ctx.depth() == 1
        assert ctx.stats()["mismatched_exits"] == 1

    def test_scope_context_manager_exits_on_exception(self, ctx):
        # Act
        with pytest.raises(RuntimeError):
            with ctx.scope("request"):
                raise RuntimeError("boom")

        # Assert
        assert ctx.depth() == 0
        assert ctx.current_trace_id() is None

    @pytest.mark.parametrize("name", ["", None, 42])
    def test_invalid_scope_names_never_raise(self, ctx, name):
        # Act
        result = ctx.enter_scope(name)
        ctx.exit_scope(name)

        # Assert
        assert result == ""
        assert ctx.depth() == 0
        assert ctx.stats()["invalid_calls"] == 2


class TestValues:
    """Tests for put/get outside and inside scopes."""

    def test_none_value_is_ignored(self, ctx):
        # Act
        ctx.put("k", None)

        # Assert
        assert ctx.get("k") is None
        assert ctx.stats()["invalid_calls"] == 1

    def test_values_are_stored_as_strings(self, ctx):
        # Act
        with ctx.scope("s"):
            ctx.put("n", 7)
            value = ctx.get("n")

        # Assert
        assert value == "7"

    def test_unscoped_values_are_discarded_by_next_scope(self, ctx):
        # Arrange
        ctx.put("stale", "x")

        # Act
        with ctx.scope("s"):
            value = ctx.get("stale")

        # Assert
        assert value is None

    def test_max_context_size_tracks_largest_view(self, ctx):
        # Act
        with ctx.scope("s"):
            ctx.put("a", "1")
            ctx.put("b", "2")

        # Assert (trace_id counts as a visible value)
        assert ctx.stats()["max_context_size"] == 3


# =============================================================================
# Threads
# =============================================================================


class TestThreads:
    """Tests for per-thread isolation and propagation."""

    def test_contexts_are_thread_local(self, ctx):
        # Arrange
        ctx.enter_scope("main")
        ctx.put("owner", "main")
        seen = {}

        def worker():
            seen["trace"] = ctx.current_trace_id()
            seen["owner"] = ctx.get("owner")

        # Act
        t = threading.Thread(target=worker)
        t.start()
        t.join()

        # Assert
        assert seen == {"trace": None, "owner": None}

    def test_wrap_carries_context_to_another_thread(self, ctx):
        # Arrange
        seen = {}
        with ctx.scope("request") as trace_id:
            ctx.put("user", "alice")

            def task():
                seen["trace"] = ctx.current_trace_id()
                seen["user"] = ctx.get("user")

            wrapped = ctx.wrap(task)

        # Act
        t = threading.Thread(target=wrapped)
        t.start()
        t.join()

        # Assert
        assert seen == {"trace": trace_id, "user": "alice"}

    def test_wrap_restores_the_invoking_threads_context(self, ctx):
        # Arrange
        with ctx.scope("producer"):
            wrapped = ctx.wrap(lambda: ctx.get("user"))

        # Act
        with ctx.scope("consumer") as consumer_trace:
            ctx.put("user", "bob")
            wrapped()
            after = (ctx.current_trace_id(), ctx.get("user"))

        # Assert
        assert after == (consumer_trace, "bob")


# =============================================================================
# TTL and emission
# =============================================================================


class TestTtl:
    """Tests for expiry of leaked scopes."""

    def test_stale_context_is_cleared(self):
        # Arrange
        clock = FakeClock()
        ctx = CorrelationContext(ttl_seconds=10, clock=clock)
        ctx.enter_scope("leaked")
        ctx.put("k", "v")

        # Act
        clock.now += 11
        value = ctx.get("k")

        # Assert
        assert value is None
        assert ctx.depth() == 0
        assert ctx.stats()["ttl_cleanups"] == 1
        assert ctx.stats()["active_contexts"] == 0

    def test_recent_access_keeps_context(self):
        # Arrange
        clock = FakeClock()
        ctx = CorrelationContext(ttl_seconds=10, clock=clock)
        ctx.enter_scope("busy")

        # Act
        for _ in range(5):
            clock.now += 5
            ctx.put("tick", "x")

        # Assert
        assert ctx.depth() == 1


class TestScopeEmitter:
    """Tests for the new-trace event."""

    def test_new_trace_emits_one_debug_event(self):
        # Arrange
        emitter = MagicMock()
        ctx = CorrelationContext(emitter=emitter)

        # Act
        with ctx.scope("request") as trace_id:
            with ctx.scope("nested"):
                pass

        # Assert
        emitter.assert_called_once_with("eventscope.context.scope", "DEBUG", {"scope": "request", "trace_id": trace_id})

    def test_emitter_failure_does_not_escape(self):
        # Arrange
        ctx = CorrelationContext(emitter=MagicMock(side_effect=RuntimeError("sink down")))

        # Act
        trace_id = ctx.enter_scope("request")

        # Assert
        assert trace_id

    def test_no_emission_while_inside_internal_emission(self):
        # Arrange
        emitter = MagicMock()
        ctx = CorrelationContext(emitter=emitter)

        # Act
        with internal_emission() as allowed:
            ctx.enter_scope("request")

        # Assert
        assert allowed is True
        emitter.assert_not_called()


class TestReentrancyGuard:
    """Tests for the internal emission guard."""

    def test_guard_is_not_reentrant(self):
        # Act
        with internal_emission() as outer:
            inside = in_internal_emission()
            with internal_emission() as inner:
                pass

        # Assert
        assert outer is True
        assert inside is True
        assert inner is False
        assert in_internal_emission() is False
