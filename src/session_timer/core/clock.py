"""Wall-clock abstractions used by the scheduler and the timer unit.

The scheduler compares *local wall-clock minutes since midnight*; the timer
unit measures elapsed seconds between two instants. Both read time through
the :class:`Clock` protocol so tests can pin and step time deterministically.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from threading import Lock
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol implemented by wall-clock providers."""

    def now(self) -> datetime:
        """Return the current local wall-clock time (naive datetime)."""


class SystemClock:
    """Clock backed by the host's local time."""

    def now(self) -> datetime:
        return datetime.now()


class SteppedClock:
    """Deterministic clock used for tests.

    Time advances only when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, start: datetime) -> None:
        self._current = start
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> datetime:
        """Advance the clock by ``seconds`` (must be non-negative)."""
        if seconds < 0.0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += timedelta(seconds=seconds)
            return self._current

    def set(self, when: datetime) -> None:
        """Jump to ``when``. Jumping backwards is allowed for test setup."""
        with self._lock:
            self._current = when


def minutes_since_midnight(when: datetime) -> int:
    return when.hour * 60 + when.minute


def format_hhmm(when: datetime) -> str:
    return f"{when.hour:02d}:{when.minute:02d}"


__all__ = [
    "Clock",
    "SystemClock",
    "SteppedClock",
    "minutes_since_midnight",
    "format_hhmm",
]
