"""Timer execution unit - measures one run and signals its completion.

Manifesto:
    The unit is told what to run (``timer:configure``), when to start
    (``timer:start``) and when to stop (``timer:stop``). It owns nothing
    about the schedule. Its one job is to answer "how far into the run are
    we" on every frame and to announce completion exactly once; it is the
    only component allowed to decide that a segment is finished.

Run lifecycle::

    configure(config) ──► idle ──start(is_manual)──► running ──update()──► completed
                           ▲                            │                     │
                           └──────── stop() ◄───────────┘◄────────────────────┘

    start(False) on a configured backdated run uses ``start_at`` as the start
    instant (mid-session join); start(True) always starts "now".

Locking:
    Run state is guarded by a private lock. Events are published only after
    the lock is released, so handlers may call back into the unit and no
    lock-order cycle with the scheduler is possible.

Tags:
    session-timer, timer, state-machine, progress
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from session_timer.core.clock import Clock, SystemClock, format_hhmm
from session_timer.core.enums import Direction, ProgressBand
from session_timer.core.events import (
    EventName,
    MessageBus,
    SegmentCompleted,
    TimerConfig,
    TimerConfigured,
    TimerStarted,
    TimerStartedMidSession,
)
from session_timer.core.logging import get_logger
from session_timer.core.settings import SessionTimerSettings, get_settings
from session_timer.segments.models import parse_hhmm, round_minutes

logger = get_logger(__name__)


@dataclass
class TimerRunState:
    """Mutable state of the current (or last configured) run."""

    nominal_duration_seconds: int
    direction: Direction = Direction.COUNT_DOWN
    running: bool = False
    is_manual_run: bool = False
    start_instant: datetime | None = None
    start_at: datetime | None = None
    elapsed_offset_seconds: int = 0


@dataclass(frozen=True)
class Progress:
    """Snapshot of a run at one instant.

    ``displayed_seconds`` is what a clock face shows: remaining time when
    counting down, elapsed time when counting up.
    """

    running: bool
    direction: Direction
    duration_seconds: int
    elapsed_seconds: float
    band: ProgressBand
    start_instant: datetime | None = None

    @property
    def remaining_seconds(self) -> float:
        return self.duration_seconds - self.elapsed_seconds

    @property
    def fraction(self) -> float:
        if self.duration_seconds <= 0:
            return 1.0
        return self.elapsed_seconds / self.duration_seconds

    @property
    def displayed_seconds(self) -> int:
        if self.direction is Direction.COUNT_DOWN:
            return int(round(self.remaining_seconds))
        return int(self.elapsed_seconds)

    @property
    def complete(self) -> bool:
        return self.elapsed_seconds >= self.duration_seconds

    def format(self) -> str:
        """``MM:SS`` (or ``H:MM:SS`` past an hour) of the displayed time."""
        total = self.displayed_seconds
        hours, rest = divmod(total, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"


def progress_band(remaining_seconds: float, orange_minutes: int, red_minutes: int) -> ProgressBand:
    remaining_minutes = remaining_seconds / 60
    if remaining_minutes <= red_minutes:
        return ProgressBand.RED
    if remaining_minutes <= orange_minutes:
        return ProgressBand.ORANGE
    return ProgressBand.GREEN


class TimerExecutionUnit:
    """Owns a single run's timing and detects its completion.

    Subscribes to ``timer:configure``, ``timer:start`` and ``timer:stop``
    on construction. Call :meth:`update` once per rendered frame (or any
    periodic beat) while running; it publishes ``segment:completed``
    followed by ``timer:stopped`` when the run ends.
    """

    def __init__(
        self,
        bus: MessageBus,
        clock: Clock | None = None,
        settings: SessionTimerSettings | None = None,
        *,
        subscribe: bool = True,
    ) -> None:
        self._bus = bus
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._lock = threading.Lock()
        self._state = TimerRunState(
            nominal_duration_seconds=self._settings.default_duration_minutes * 60
        )
        self._completions = 0
        self._subscribed = False
        if subscribe:
            self.subscribe()

    def subscribe(self) -> None:
        if self._subscribed:
            return
        self._bus.subscribe(EventName.TIMER_CONFIGURE, self._on_configure)
        self._bus.subscribe(EventName.TIMER_START, self._on_start)
        self._bus.subscribe(EventName.TIMER_STOP, self._on_stop)
        self._subscribed = True

    def unsubscribe(self) -> None:
        if not self._subscribed:
            return
        self._bus.unsubscribe(EventName.TIMER_CONFIGURE, self._on_configure)
        self._bus.unsubscribe(EventName.TIMER_START, self._on_start)
        self._bus.unsubscribe(EventName.TIMER_STOP, self._on_stop)
        self._subscribed = False

    def _on_configure(self, config: Any) -> None:
        self.configure(config)

    def _on_start(self, is_manual: Any = None) -> None:
        self.start(True if is_manual is None else bool(is_manual))

    def _on_stop(self, _payload: Any = None) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def configure(self, config: TimerConfig | Mapping[str, Any]) -> TimerConfig:
        """Store the next run's duration, direction and optional backdated start.

        Accepts a :class:`TimerConfig` or its wire dict
        (``segmentDuration``, ``countDown``, ``autoStart``). A run in
        progress is superseded and stopped.
        """
        config = self._coerce(config)
        with self._lock:
            superseded = self._state.running
            self._state = TimerRunState(
                nominal_duration_seconds=config.duration_seconds,
                direction=config.direction,
                start_at=config.start_at,
                elapsed_offset_seconds=config.elapsed_seconds,
            )

        if superseded:
            logger.info("timer_run_superseded")
            self._bus.publish(EventName.TIMER_STOPPED)

        logger.debug(
            "timer_configured",
            duration_seconds=config.duration_seconds,
            direction=config.direction.value,
            start_at=config.start_at.isoformat() if config.start_at else None,
        )
        self._bus.publish(
            EventName.TIMER_CONFIGURED,
            TimerConfigured(
                duration_seconds=config.duration_seconds,
                direction=config.direction,
                start_at=config.start_at,
            ),
        )
        return config

    def start(self, is_manual: bool = True) -> bool:
        """Start the configured run. Returns False if already running.

        A manual start begins now. A scheduled start (``is_manual=False``)
        begins at the configured backdated instant when there is one.
        """
        with self._lock:
            state = self._state
            if state.running:
                logger.debug("timer_start_ignored", reason="already_running")
                return False

            now = self._clock.now()
            if not is_manual and state.start_at is not None:
                start_instant = state.start_at
            else:
                start_instant = now
            state.running = True
            state.is_manual_run = is_manual
            state.start_instant = start_instant

            mid_session = not is_manual and state.elapsed_offset_seconds > 0
            joined_at = state.elapsed_offset_seconds + int(
                max(timedelta(0), now - start_instant).total_seconds()
            )

        logger.info(
            "timer_started",
            manual=is_manual,
            start=start_instant.isoformat(),
            duration_seconds=state.nominal_duration_seconds,
        )
        self._bus.publish(
            EventName.TIMER_STARTED,
            TimerStarted(time=format_hhmm(start_instant), manual=is_manual),
        )
        if mid_session:
            self._bus.publish(EventName.TIMER_STARTED_MID_SESSION, TimerStartedMidSession(elapsed=joined_at))
        return True

    def stop(self) -> bool:
        """Stop the run. Never raises; returns True if a run was stopped."""
        with self._lock:
            was_running = self._clear_run()

        if was_running:
            logger.info("timer_stopped")
            self._bus.publish(EventName.TIMER_STOPPED)
        return was_running

    def update(self) -> Progress:
        """Advance the run to the current instant.

        When the run reaches its nominal duration this publishes
        ``segment:completed`` exactly once and stops the run.
        """
        with self._lock:
            progress = self._progress_locked()
            completed: SegmentCompleted | None = None
            if progress.running and progress.complete:
                completed = SegmentCompleted(
                    duration_minutes=round_minutes(self._state.nominal_duration_seconds),
                    mode=self._state.direction,
                    was_manual=self._state.is_manual_run,
                )
                self._clear_run()
                self._completions += 1

        if completed is not None:
            logger.info("segment_completed", **completed.to_dict())
            self._bus.publish(EventName.SEGMENT_COMPLETED, completed)
            self._bus.publish(EventName.TIMER_STOPPED)
        return progress

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def progress(self) -> Progress:
        """Current progress without side effects."""
        with self._lock:
            return self._progress_locked()

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def completions(self) -> int:
        return self._completions

    @property
    def run_state(self) -> TimerRunState:
        with self._lock:
            return TimerRunState(**vars(self._state))

    def current_settings(self) -> dict[str, Any]:
        with self._lock:
            return {
                "segmentDuration": self._state.nominal_duration_seconds,
                "countDown": self._state.direction.counts_down,
                "running": self._state.running,
                "manualRun": self._state.is_manual_run,
            }

    # ------------------------------------------------------------------

    def _progress_locked(self) -> Progress:
        state = self._state
        duration = state.nominal_duration_seconds
        if state.running and state.start_instant is not None:
            raw = (self._clock.now() - state.start_instant).total_seconds()
            elapsed = min(max(raw, 0.0), float(duration))
        else:
            elapsed = 0.0
        return Progress(
            running=state.running,
            direction=state.direction,
            duration_seconds=duration,
            elapsed_seconds=elapsed,
            band=progress_band(
                duration - elapsed,
                self._settings.orange_threshold_minutes,
                self._settings.red_threshold_minutes,
            ),
            start_instant=state.start_instant,
        )

    def _clear_run(self) -> bool:
        state = self._state
        was_running = state.running
        state.running = False
        state.is_manual_run = False
        state.start_instant = None
        return was_running

    def _coerce(self, config: TimerConfig | Mapping[str, Any]) -> TimerConfig:
        if isinstance(config, TimerConfig):
            return config
        if not isinstance(config, Mapping):
            raise TypeError(f"Unsupported timer configuration: {config!r}")

        duration = int(config.get("segmentDuration") or self._settings.default_duration_minutes * 60)
        start_at = None
        auto_start = config.get("autoStart")
        if auto_start and not config.get("manualStart"):
            hhmm = parse_hhmm(auto_start)
            start_at = self._clock.now().replace(
                hour=hhmm.hour, minute=hhmm.minute, second=0, microsecond=0
            )
        return TimerConfig(
            duration_seconds=duration,
            direction=Direction.from_count_down(config.get("countDown", True) is not False),
            start_at=start_at,
        )


__all__ = [
    "Progress",
    "TimerExecutionUnit",
    "TimerRunState",
    "progress_band",
]
