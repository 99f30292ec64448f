"""
Identity and clock adapter.

Every registry operation starts by capturing a CallContext: the already
authenticated caller identity plus one logical timestamp. Signature checks
happen upstream; the registry trusts the identity it is given.

Invariants:
    - Timestamps handed out by a clock never decrease
    - Assignment is serialized, so concurrent callers observe a total order
    - A CallContext is immutable for the duration of one operation
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


@runtime_checkable
class LogicalClock(Protocol):
    """Source of monotonically non-decreasing logical timestamps."""

    def now(self) -> int:
        """Return the current logical timestamp."""
        ...


class MonotonicClock:
    """Clamps an arbitrary time source to a non-decreasing sequence.

    If the source steps backwards (NTP adjustment, a replayed block height),
    the last issued value is returned again instead.

    Example:
        >>> clock = MonotonicClock()
        >>> a = clock.now()
        >>> b = clock.now()
        >>> b >= a
        True
    """

    def __init__(self, source: Callable[[], int] = wall_clock_ms) -> None:
        self._source = source
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            value = self._source()
            if value < self._last:
                logger.warning(
                    "Clock source went backwards, holding last timestamp",
                    extra={"source_value": value, "last_value": self._last},
                )
                value = self._last
            self._last = value
            return value


class ManualClock:
    """Explicitly driven clock, e.g. fed from an external sequence height."""

    def __init__(self, start: int = 0) -> None:
        self._value = start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        """Move the clock to ``value``.

        Raises:
            ValueError: If ``value`` is lower than the current time
        """
        with self._lock:
            if value < self._value:
                raise ValueError(f"Clock cannot move backwards: {value} < {self._value}")
            self._value = value

    def advance(self, delta: int = 1) -> int:
        """Advance by ``delta`` and return the new value."""
        if delta < 0:
            raise ValueError("delta must be non-negative")
        with self._lock:
            self._value += delta
            return self._value


@dataclass(frozen=True)
class CallContext:
    """Caller identity and timestamp for one operation."""

    caller: str
    timestamp: int

    @classmethod
    def capture(cls, caller: str, clock: LogicalClock) -> CallContext:
        """Read the clock once for an operation by ``caller``.

        Raises:
            ValueError: If ``caller`` is empty
        """
        if not caller:
            raise ValueError("caller identity is required")
        return cls(caller=caller, timestamp=clock.now())
