"""Manually driven tick backend for tests and embedding hosts.

Nothing ticks on its own: the host (a test, or an event loop that already
has a 1 Hz callback) calls :meth:`ManualTickBackend.fire`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .protocol import TickCallback


class ManualTickBackend:
    """Tick backend that only ticks when :meth:`fire` is called."""

    name = "manual"

    def __init__(self) -> None:
        self._callback: TickCallback | None = None
        self._interval: float | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self.start_count = 0
        self.stop_count = 0

    def start(self, tick_callback: TickCallback, interval_seconds: float = 1.0) -> None:
        self._callback = tick_callback
        self._interval = interval_seconds
        self.start_count += 1

    def stop(self) -> None:
        if self._callback is not None:
            self.stop_count += 1
        self._callback = None

    def fire(self, times: int = 1) -> None:
        """Invoke the tick callback ``times`` times. No-op while stopped."""
        for _ in range(times):
            if self._callback is None:
                return
            self._tick_count += 1
            self._last_tick = datetime.now()
            self._callback()

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.is_running,
            "backend": self.name,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "interval_seconds": self._interval,
        }

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    @property
    def tick_count(self) -> int:
        return self._tick_count
