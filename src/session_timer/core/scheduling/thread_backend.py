"""Zero-dependency threading-based tick backend.

This is the DEFAULT tick source for the segment scheduler. It runs a daemon
thread that calls the tick callback every ``interval_seconds``.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD BACKEND                                                               │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │              Daemon Thread (loop)                       │                │
│   │                                                         │                │
│   │   while not stop_event.wait(interval):                  │                │
│   │       tick_count += 1                                   │                │
│   │       last_tick = now()                                 │                │
│   │       tick_callback()  ◄──────────── SegmentScheduler   │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()  →  stop_event.set(); thread.join(timeout)                          │
└──────────────────────────────────────────────────────────────────────────────┘

A backend instance can be started again after ``stop()``; each start gets a
fresh stop event so a lingering old thread can never keep ticking.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any

from session_timer.core.logging import get_logger

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadTickBackend:
    """Threading-based tick backend.

    Example:
        >>> backend = ThreadTickBackend()
        >>> backend.start(lambda: print("tick"), interval_seconds=1.0)
        >>> # ... later ...
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, join_timeout: float = 5.0) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 1.0
        self._join_timeout = join_timeout
        self._started = False
        self._lock = threading.Lock()

    def start(self, tick_callback: TickCallback, interval_seconds: float = 1.0) -> None:
        """Start the tick loop in a daemon thread.

        Args:
            tick_callback: Function to call on each tick.
            interval_seconds: How often to tick (default: 1s).
        """
        if self._started:
            logger.warning("tick_backend_already_started", backend=self.name)
            return

        self._interval = interval_seconds
        stop_event = threading.Event()
        self._stop_event = stop_event

        def _loop() -> None:
            logger.debug("tick_backend_started", backend=self.name, interval=interval_seconds)
            while not stop_event.wait(interval_seconds):
                with self._lock:
                    self._tick_count += 1
                    self._last_tick = datetime.now()

                try:
                    tick_callback()
                except Exception as e:
                    logger.exception("tick_failed", backend=self.name, error=str(e))

            logger.debug("tick_backend_loop_exited", backend=self.name)

        self._thread = threading.Thread(target=_loop, daemon=True, name="session-timer-tick")
        self._thread.start()
        self._started = True

    def stop(self) -> None:
        """Stop the tick loop, waiting briefly for an in-flight tick."""
        if not self._started:
            return

        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout)
            if thread.is_alive():
                logger.warning("tick_thread_did_not_stop", backend=self.name)

        self._started = False

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        return self.get_health().to_dict()

    def get_health(self) -> BackendHealth:
        """Return structured health status."""
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
