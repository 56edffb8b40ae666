"""Cancellable deferred actions ("run this callback in N seconds").

Manifesto:
    The scheduler starts a scheduled run only after a short settle delay, and
    re-ticks one second after a segment completes. Both are deferred
    callbacks that a user stop or a configuration reload must be able to
    cancel. Holding them as explicit :class:`DeferredAction` values makes
    cancellation a first-class, testable operation instead of a
    fire-and-forget timer.

Implementations:
    - ThreadDeferrer: ``threading.Timer`` per action (production)
    - ManualDeferrer: due-time queue driven by a :class:`~session_timer.core.clock.Clock`
      (tests; nothing runs until :meth:`ManualDeferrer.run_due`)

Tags:
    session-timer, deferred, cancellation, timers
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol, runtime_checkable

from session_timer.core.clock import Clock
from session_timer.core.logging import get_logger

logger = get_logger(__name__)

DeferredCallback = Callable[[], None]


class DeferredAction:
    """Handle for a callback scheduled to run later.

    ``cancel()`` is idempotent and safe after the callback has run. Once
    cancelled, the callback never runs.
    """

    def __init__(self, label: str, callback: DeferredCallback) -> None:
        self.label = label
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._done)

    def cancel(self) -> bool:
        """Cancel the action. Returns True if it was still pending."""
        with self._lock:
            if self._cancelled or self._done:
                return False
            self._cancelled = True
        logger.debug("deferred_cancelled", label=self.label)
        return True

    def fire(self) -> bool:
        """Run the callback unless cancelled or already run.

        Returns True if the callback ran. Exceptions from the callback are
        logged, not raised, since the caller is a timer thread or a test
        driver with nobody to report to.
        """
        with self._lock:
            if self._cancelled or self._done:
                return False
            self._done = True
        try:
            self._callback()
        except Exception:
            logger.exception("deferred_callback_failed", label=self.label)
        return True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "done" if self._done else "pending"
        return f"DeferredAction({self.label!r}, {state})"


@runtime_checkable
class Deferrer(Protocol):
    """Schedules callbacks to run after a delay."""

    def call_later(
        self, delay_seconds: float, callback: DeferredCallback, label: str = "deferred"
    ) -> DeferredAction:
        """Run ``callback`` after ``delay_seconds``; return a cancellable handle."""
        ...


class ThreadDeferrer:
    """Runs each deferred action on a daemon ``threading.Timer``."""

    def call_later(
        self, delay_seconds: float, callback: DeferredCallback, label: str = "deferred"
    ) -> DeferredAction:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")

        action = _ThreadAction(label, callback)
        timer = threading.Timer(delay_seconds, action.fire)
        timer.daemon = True
        timer.name = f"session-timer-{label}"
        action._timer = timer
        timer.start()
        return action


class _ThreadAction(DeferredAction):
    _timer: threading.Timer | None = None

    def cancel(self) -> bool:
        cancelled = super().cancel()
        if cancelled and self._timer is not None:
            self._timer.cancel()
        return cancelled


class ManualDeferrer:
    """Deterministic deferrer for tests.

    Actions are queued with a due time computed from ``clock``; they run
    only when :meth:`run_due` is called, in due-time order (ties in
    submission order). Actions scheduled by a running callback are picked up
    in the same :meth:`run_due` call if already due.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._seq = itertools.count()
        self._queue: list[tuple[datetime, int, DeferredAction]] = []

    def call_later(
        self, delay_seconds: float, callback: DeferredCallback, label: str = "deferred"
    ) -> DeferredAction:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")
        action = DeferredAction(label, callback)
        due = self._clock.now() + timedelta(seconds=delay_seconds)
        self._queue.append((due, next(self._seq), action))
        return action

    def run_due(self) -> int:
        """Fire every pending action whose due time has passed. Returns the count fired."""
        fired = 0
        while True:
            now = self._clock.now()
            due = sorted(
                (entry for entry in self._queue if entry[0] <= now),
                key=lambda entry: (entry[0], entry[1]),
            )
            if not due:
                break
            entry = due[0]
            self._queue.remove(entry)
            if entry[2].fire():
                fired += 1
        self._queue = [entry for entry in self._queue if entry[2].pending]
        return fired

    @property
    def pending(self) -> list[DeferredAction]:
        return [entry[2] for entry in sorted(self._queue, key=lambda e: (e[0], e[1])) if entry[2].pending]


__all__ = [
    "DeferredAction",
    "DeferredCallback",
    "Deferrer",
    "ThreadDeferrer",
    "ManualDeferrer",
]
