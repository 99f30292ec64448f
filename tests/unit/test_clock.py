"""
Unit tests for the identity and clock adapter.

Tests cover:
- Monotonic clamping of a misbehaving time source
- Manual clock driving
- CallContext capture
"""

import pytest

from docreg_server.clock import CallContext, LogicalClock, ManualClock, MonotonicClock


class TestMonotonicClock:
    def test_non_decreasing_when_source_goes_backwards(self):
        """Source stepping back yields the last value again."""
        values = iter([100, 200, 150, 300])
        clock = MonotonicClock(source=lambda: next(values))

        assert [clock.now() for _ in range(4)] == [100, 200, 200, 300]

    def test_default_source_is_wall_clock(self):
        clock = MonotonicClock()
        first = clock.now()
        assert first > 0
        assert clock.now() >= first

    def test_satisfies_protocol(self):
        assert isinstance(MonotonicClock(), LogicalClock)


class TestManualClock:
    def test_advance(self):
        clock = ManualClock(start=10)
        assert clock.now() == 10
        assert clock.advance() == 11
        assert clock.advance(5) == 16
        assert clock.now() == 16

    def test_set_forward(self):
        clock = ManualClock()
        clock.set(42)
        assert clock.now() == 42

    def test_set_backwards_rejected(self):
        clock = ManualClock(start=10)
        with pytest.raises(ValueError):
            clock.set(9)
        assert clock.now() == 10

    def test_negative_advance_rejected(self):
        with pytest.raises(ValueError):
            ManualClock().advance(-1)


class TestCallContext:
    def test_capture_reads_clock_once(self):
        clock = ManualClock(start=7)
        ctx = CallContext.capture("user:alice", clock)

        assert ctx.caller == "user:alice"
        assert ctx.timestamp == 7

    def test_capture_requires_caller(self):
        with pytest.raises(ValueError):
            CallContext.capture("", ManualClock())

    def test_context_is_immutable(self):
        ctx = CallContext.capture("user:alice", ManualClock())
        with pytest.raises(AttributeError):
            ctx.caller = "user:mallory"
