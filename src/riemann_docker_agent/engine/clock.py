# src/riemann_docker_agent/engine/clock.py
"""Clock abstraction for testable timing.

The heartbeat stamps records with wall-clock time and waits between ticks;
the sender sleeps between reconnect attempts. Both take a Clock so tests
can control time without real sleeps.

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract clock for timestamps and backoff sleeps."""

    def time(self) -> float:
        """Return wall-clock time in epoch seconds (time.time())."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for the given number of seconds."""
        ...


class SystemClock:
    """Production clock using time.time() and time.sleep()."""

    def time(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class MockClock:
    """Controllable clock for deterministic testing.

    sleep() does not block; it advances the clock and records the request,
    so backoff schedules can be asserted directly.

    Example:
        clock = MockClock(start=1_000.0)
        clock.sleep(2.0)
        assert clock.time() == 1_002.0
        assert clock.sleeps == [2.0]
    """

    def __init__(self, start: float = 0.0) -> None:
        """Initialize mock clock at a given epoch time."""
        self._current = start
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self._current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
