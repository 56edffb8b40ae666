"""APScheduler-based tick backend.

Wraps APScheduler 3.x ``BackgroundScheduler`` to provide the
``TickBackend`` protocol, for hosts that already run an APScheduler
instance or want its misfire handling.

Requires the ``[apscheduler]`` extra::

    pip install session-timer[apscheduler]

.. note::

    For most use cases the zero-dependency ``ThreadTickBackend`` is
    sufficient.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from session_timer.core.logging import get_logger

from .protocol import TickCallback

logger = get_logger(__name__)

_JOB_ID = "session_timer_tick"


def _require_apscheduler():
    """Validate that apscheduler is installed."""
    try:
        from apscheduler.schedulers.background import BackgroundScheduler  # noqa: F401

        return BackgroundScheduler
    except ImportError:
        raise ImportError(
            "APScheduler is required for APSchedulerTickBackend. "
            "Install it with: pip install session-timer[apscheduler]"
        ) from None


class APSchedulerTickBackend:
    """APScheduler-based tick backend.

    The scheduler runs one interval job that invokes the tick callback.
    ``max_instances=1`` and ``coalesce=True`` keep ticks from overlapping
    or piling up after a stall.

    Example::

        >>> backend = APSchedulerTickBackend()
        >>> backend.start(tick_callback, interval_seconds=1.0)
        >>> backend.stop()
    """

    name: str = "apscheduler"

    def __init__(self) -> None:
        self._scheduler_cls = _require_apscheduler()
        self._scheduler: Any = None
        self._tick_count: int = 0
        self._last_tick: datetime | None = None

    def start(self, tick_callback: TickCallback, interval_seconds: float = 1.0) -> None:
        """Register the interval job and start a fresh BackgroundScheduler."""
        if self.is_running:
            logger.warning("tick_backend_already_started", backend=self.name)
            return

        def _tick_wrapper() -> None:
            self._tick_count += 1
            self._last_tick = datetime.now()
            try:
                tick_callback()
            except Exception:
                logger.exception("tick_failed", backend=self.name)

        # A shut-down BackgroundScheduler cannot be restarted, so each start
        # gets its own instance.
        self._scheduler = self._scheduler_cls()
        self._scheduler.add_job(
            _tick_wrapper,
            "interval",
            seconds=interval_seconds,
            id=_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.debug("tick_backend_started", backend=self.name, interval=interval_seconds)

    def stop(self) -> None:
        """Shut the scheduler down, waiting for an in-flight tick."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            logger.debug("tick_backend_stopped", backend=self.name)

    def health(self) -> dict[str, Any]:
        """Return backend health status."""
        running = self.is_running
        return {
            "healthy": running,
            "backend": self.name,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
            "scheduled_jobs": len(self._scheduler.get_jobs()) if running else 0,
        }

    @property
    def is_running(self) -> bool:
        return bool(self._scheduler is not None and self._scheduler.running)
