"""Session composition root and frame loop.

A ``Session`` wires one message bus, one :class:`SegmentScheduler` and one
:class:`TimerExecutionUnit` together in the order the event contract needs
(scheduler subscribes first). It is what a front end holds: it opens a
configuration, forwards user start/stop, and pulls a frame whenever it
wants to redraw.

``SessionRunner`` is the frame loop used by ``session-timer run``: it calls
:meth:`Session.frame` every ``frame_interval_seconds`` and hands each frame
to a render callback until the schedule completes.

Usage::

    with Session.create() as session:
        session.open({"segments": [{"time": "10:00", "duration": 20}]})
        SessionRunner(session, on_frame=print).run()
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from session_timer.core.clock import Clock, SystemClock
from session_timer.core.deferred import Deferrer
from session_timer.core.events import EventName, MessageBus
from session_timer.core.events.memory import InMemoryMessageBus
from session_timer.core.logging import get_logger
from session_timer.core.scheduling import TickBackend
from session_timer.core.settings import SessionTimerSettings, get_settings
from session_timer.segments.loader import ScheduleConfig, parse_config
from session_timer.segments.models import Segment
from session_timer.segments.scheduler import ScheduleSnapshot, SegmentScheduler
from session_timer.timer.unit import Progress, TimerExecutionUnit

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionFrame:
    """Everything a renderer needs for one redraw."""

    now: datetime
    progress: Progress
    schedule: ScheduleSnapshot
    schedule_completed: bool = False

    @property
    def active_segment(self) -> Segment | None:
        if self.schedule.is_active:
            return self.schedule.current_segment
        return None


class Session:
    """One bus, one scheduler, one timer unit."""

    def __init__(
        self,
        bus: MessageBus | None = None,
        clock: Clock | None = None,
        deferrer: Deferrer | None = None,
        backend: TickBackend | None = None,
        settings: SessionTimerSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.bus = bus or InMemoryMessageBus()
        self.clock = clock or SystemClock()
        self.scheduler = SegmentScheduler(
            self.bus,
            clock=self.clock,
            deferrer=deferrer,
            backend=backend,
            settings=self.settings,
        )
        self.timer = TimerExecutionUnit(self.bus, clock=self.clock, settings=self.settings)
        self._schedule_completed = threading.Event()
        self._closed = False
        self.bus.subscribe(EventName.SCHEDULE_COMPLETED, self._on_schedule_completed)
        self.bus.subscribe(EventName.SEGMENTS_CONFIGURED, self._on_segments_configured)

    @classmethod
    def create(cls, settings: SessionTimerSettings | None = None, **kwargs: Any) -> Session:
        """Build a session with production defaults for anything not given."""
        return cls(settings=settings, **kwargs)

    def _on_schedule_completed(self, _payload: Any = None) -> None:
        self._schedule_completed.set()

    def _on_segments_configured(self, _payload: Any = None) -> None:
        self._schedule_completed.clear()

    # ------------------------------------------------------------------

    def open(self, payload: ScheduleConfig | Mapping[str, Any] | None) -> tuple[Segment, ...]:
        """Validate ``payload`` and publish it as ``config:ready``.

        Raises:
            InvalidConfigError: If the payload is malformed. Nothing is published.
        """
        config = parse_config(payload)
        self.bus.publish(EventName.CONFIG_READY, config)
        return self.scheduler.segments

    def start(self) -> None:
        """User start (button/gesture)."""
        self.bus.publish(EventName.TIMER_START, True)

    def stop(self) -> None:
        """User stop."""
        self.bus.publish(EventName.TIMER_STOP)

    def toggle(self) -> None:
        if self.timer.is_running:
            self.stop()
        else:
            self.start()

    def frame(self) -> SessionFrame:
        """Advance the timer to now and snapshot everything for rendering."""
        progress = self.timer.update()
        return SessionFrame(
            now=self.clock.now(),
            progress=progress,
            schedule=self.scheduler.state(),
            schedule_completed=self._schedule_completed.is_set(),
        )

    @property
    def schedule_completed(self) -> bool:
        return self._schedule_completed.is_set()

    @property
    def idle(self) -> bool:
        """True when nothing runs and nothing more can start on its own."""
        state = self.scheduler.state()
        if state.is_active or self.timer.is_running:
            return False
        if self._schedule_completed.is_set() or state.user_paused:
            return True
        return all(segment.is_manual or segment.activated for segment in state.segments[state.current_index:])

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.timer.stop()
        self.scheduler.shutdown()
        self.timer.unsubscribe()
        self.bus.unsubscribe(EventName.SCHEDULE_COMPLETED, self._on_schedule_completed)
        self.bus.unsubscribe(EventName.SEGMENTS_CONFIGURED, self._on_segments_configured)
        logger.debug("session_closed")

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class SessionRunner:
    """Pull frames from a session at a fixed interval."""

    def __init__(
        self,
        session: Session,
        on_frame: Callable[[SessionFrame], None] | None = None,
        interval_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.on_frame = on_frame
        self.interval_seconds = interval_seconds or session.settings.frame_interval_seconds
        self._sleep = sleep
        self._stop = threading.Event()

    def request_stop(self) -> None:
        self._stop.set()

    def run(self, *, max_frames: int | None = None, keep_open: bool = False) -> int:
        """Render frames until the session goes idle (or forever with ``keep_open``).

        Idle means the schedule completed, the user paused it, or only
        manual segments remain.

        Returns the number of frames rendered.
        """
        frames = 0
        while not self._stop.is_set():
            frame = self.session.frame()
            if self.on_frame is not None:
                self.on_frame(frame)
            frames += 1

            if max_frames is not None and frames >= max_frames:
                break
            if not keep_open and (frame.schedule_completed or self.session.idle):
                break
            self._sleep(self.interval_seconds)

        logger.debug("session_runner_finished", frames=frames)
        return frames


__all__ = [
    "Session",
    "SessionFrame",
    "SessionRunner",
]
