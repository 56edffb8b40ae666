"""Segment scheduler - sequences segments against the wall clock.

Manifesto:
    The SegmentScheduler owns the segment list and the pointer to the
    current segment. It never measures a run and never decides that a run
    is finished; it only decides *which* segment runs next and *when* it may
    start, then tells the timer unit over the message bus. Every transition
    (tick, user start, user stop, completion, deferred start) is serialized
    behind one re-entrant lock so the guards below hold no matter which
    thread delivers the signal.

Tags:
    session-timer, scheduling, state-machine, beat-as-poller

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  SEGMENT SCHEDULER                                                            │
│                                                                               │
│   Dependencies:                                                               │
│   ┌──────────────┐  ┌──────────────┐  ┌──────────────┐  ┌──────────────┐     │
│   │ MessageBus   │  │ Clock        │  │ Deferrer     │  │ TickBackend  │     │
│   │ (signals)    │  │ (wall time)  │  │ (settle,     │  │ (1 Hz beat)  │     │
│   │              │  │              │  │  re-check)   │  │              │     │
│   └──────┬───────┘  └──────┬───────┘  └──────┬───────┘  └──────┬───────┘     │
│          ▼                 ▼                 ▼                 ▼             │
│   ┌──────────────────────────────────────────────────────────────────────┐   │
│   │ tick()   window = [scheduled time, scheduled time + duration)         │   │
│   │   1. empty list / user paused / segment active  → no-op             │   │
│   │   2. current segment manual or already activated → no-op            │   │
│   │   3. now <  opens                               → wait              │   │
│   │   4. opens <= now < closes                      → activate(elapsed) │   │
│   │   5. now >= closes                              → skip, next segment│   │
│   └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│   Consumed events            Published events                                 │
│   ├── config:ready           ├── segments:configured                          │
│   ├── timer:start            ├── timer:configure                              │
│   ├── timer:stop             ├── timer:start (deferred, scheduled path)       │
│   └── segment:completed      ├── segment:active                               │
│                              └── schedule:completed                           │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from session_timer.core.clock import Clock, SystemClock, minutes_since_midnight
from session_timer.core.deferred import DeferredAction, Deferrer, ThreadDeferrer
from session_timer.core.errors import InvalidConfigError, SchedulingError
from session_timer.core.events import (
    EventName,
    MessageBus,
    SegmentActive,
    SegmentsConfigured,
    TimerConfig,
)
from session_timer.core.logging import LogContext, get_logger
from session_timer.core.scheduling import TickBackend, create_backend
from session_timer.core.settings import SessionTimerSettings, get_settings
from session_timer.segments.loader import ScheduleConfig, build_segments, parse_config
from session_timer.segments.models import Segment, default_segment

logger = get_logger(__name__)


@dataclass
class SchedulerStats:
    """Counters for the scheduler's lifetime (not reset by reloads)."""

    tick_count: int = 0
    loads: int = 0
    activations: int = 0
    segments_skipped: int = 0
    segments_completed: int = 0
    last_tick: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_count": self.tick_count,
            "loads": self.loads,
            "activations": self.activations,
            "segments_skipped": self.segments_skipped,
            "segments_completed": self.segments_completed,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
        }


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Read-only view of the scheduler state for UI collaborators."""

    segments: tuple[Segment, ...]
    current_index: int
    is_active: bool
    user_paused: bool
    schedule_started: bool
    activation_pending: bool = False

    @property
    def has_more_segments(self) -> bool:
        return self.current_index < len(self.segments)

    @property
    def current_segment(self) -> Segment | None:
        if self.has_more_segments:
            return self.segments[self.current_index]
        return None

    @property
    def total_segments(self) -> int:
        return len(self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "segments": [segment.to_dict() for segment in self.segments],
            "currentSegmentIndex": self.current_index,
            "isActive": self.is_active,
            "userPaused": self.user_paused,
            "scheduleStarted": self.schedule_started,
            "hasMoreSegments": self.has_more_segments,
        }


class SegmentScheduler:
    """Owns the segment list and activates segments at their wall-clock time.

    Example:
        >>> bus = InMemoryMessageBus()
        >>> scheduler = SegmentScheduler(bus)
        >>> timer = TimerExecutionUnit(bus)
        >>> bus.publish(EventName.CONFIG_READY, {"segments": [
        ...     {"time": "10:00", "duration": 20, "mode": "down"},
        ... ]})
        >>> scheduler.state().current_index
        0

    The scheduler subscribes to the bus on construction. It must be
    created before the timer unit so that a user ``timer:start`` configures
    the run before the timer unit starts it.
    """

    def __init__(
        self,
        bus: MessageBus,
        clock: Clock | None = None,
        deferrer: Deferrer | None = None,
        backend: TickBackend | None = None,
        settings: SessionTimerSettings | None = None,
        *,
        subscribe: bool = True,
    ) -> None:
        self._bus = bus
        self._clock = clock or SystemClock()
        self._deferrer = deferrer or ThreadDeferrer()
        self._settings = settings or get_settings()
        self._backend = backend or create_backend(self._settings.tick_backend)
        self._lock = threading.RLock()

        self._segments: list[Segment] = []
        self._current_index = 0
        self._is_active = False
        self._user_paused = False
        self._schedule_started = False
        self._pending_activation: DeferredAction | None = None
        self._pending_recheck: DeferredAction | None = None

        self._stats = SchedulerStats()
        self._subscribed = False
        if subscribe:
            self.subscribe()

    # ------------------------------------------------------------------
    # Bus wiring
    # ------------------------------------------------------------------

    def subscribe(self) -> None:
        """Subscribe to the events the scheduler reacts to."""
        if self._subscribed:
            return
        self._bus.subscribe(EventName.CONFIG_READY, self._on_config_ready)
        self._bus.subscribe(EventName.TIMER_START, self._on_timer_start)
        self._bus.subscribe(EventName.TIMER_STOP, self._on_timer_stop)
        self._bus.subscribe(EventName.SEGMENT_COMPLETED, self._on_segment_completed)
        self._subscribed = True

    def unsubscribe(self) -> None:
        if not self._subscribed:
            return
        self._bus.unsubscribe(EventName.CONFIG_READY, self._on_config_ready)
        self._bus.unsubscribe(EventName.TIMER_START, self._on_timer_start)
        self._bus.unsubscribe(EventName.TIMER_STOP, self._on_timer_stop)
        self._bus.unsubscribe(EventName.SEGMENT_COMPLETED, self._on_segment_completed)
        self._subscribed = False

    def _on_config_ready(self, payload: Any) -> None:
        try:
            self.load_config(payload)
        except InvalidConfigError as e:
            # Previous schedule stays in place.
            logger.error("config_rejected", **e.to_dict())

    def _on_timer_start(self, is_manual: Any = True) -> None:
        self.handle_manual_start()

    def _on_timer_stop(self, _payload: Any = None) -> None:
        self.handle_stop()

    def _on_segment_completed(self, _payload: Any = None) -> None:
        self.handle_segment_completed()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def load_config(self, payload: ScheduleConfig | dict[str, Any] | None) -> list[Segment]:
        """Validate a ``config:ready`` payload and load the resulting segments.

        Raises:
            InvalidConfigError: If the payload is malformed. State is untouched.
        """
        config = parse_config(payload)
        segments = build_segments(
            config,
            self._clock.now(),
            default_minutes=self._settings.default_duration_minutes,
        )
        self.load(segments)
        return segments

    def load(self, segments: list[Segment]) -> None:
        """Replace the whole schedule and restart the tick source.

        A run in progress is stopped first. All flags reset, the tick
        source restarts, ``segments:configured`` is published and one tick
        runs immediately.
        """
        self._backend.stop()

        with self._lock:
            self._cancel_deferred()
            if self._is_active:
                logger.info("active_segment_superseded", index=self._current_index)
                self._bus.publish(EventName.TIMER_STOP)

            self._segments = list(segments)
            self._current_index = 0
            self._is_active = False
            self._user_paused = False
            self._schedule_started = False
            self._stats.loads += 1

            logger.info(
                "segments_loaded",
                count=len(self._segments),
                scheduled=sum(1 for s in self._segments if not s.is_manual),
            )

            self._backend.start(self.tick, interval_seconds=self._settings.tick_interval_seconds)
            self._bus.publish(
                EventName.SEGMENTS_CONFIGURED, SegmentsConfigured(segments=tuple(self._segments))
            )
            self.tick()

    # ------------------------------------------------------------------
    # Tick source lifecycle
    # ------------------------------------------------------------------

    # The backend is never stopped while holding ``_lock``: stopping waits
    # for an in-flight tick, and that tick may be waiting for the lock.

    def start_ticking(self) -> None:
        """(Re)start the tick source; at most one runs per scheduler."""
        self._backend.stop()
        self._backend.start(self.tick, interval_seconds=self._settings.tick_interval_seconds)

    def stop_ticking(self) -> None:
        self._backend.stop()

    @property
    def is_ticking(self) -> bool:
        return self._backend.is_running

    # ------------------------------------------------------------------
    # Periodic evaluation
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Evaluate the current segment against the wall clock.

        Expired segments are skipped and the next one is evaluated in the
        same tick. Manual and already-activated segments are never started
        from here.
        """
        with self._lock:
            now = self._clock.now()
            self._stats.tick_count += 1
            self._stats.last_tick = now

            if not self._segments or self._user_paused or self._is_active:
                return

            now_minute = minutes_since_midnight(now)
            while self._current_index < len(self._segments):
                segment = self._segments[self._current_index]
                if segment.is_manual or segment.activated:
                    return

                opens = segment.window_start_minute
                if now_minute < opens:
                    return

                if now_minute < segment.window_end_minute:
                    self.activate(self._current_index, now_minute - opens)
                    return

                logger.info(
                    "segment_skipped_expired",
                    index=self._current_index,
                    window_start_minute=opens,
                    window_end_minute=segment.window_end_minute,
                    now_minute=now_minute,
                )
                self._stats.segments_skipped += 1
                self._current_index += 1

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self, index: int, elapsed_minutes: int = 0, *, user_initiated: bool = False) -> None:
        """Make ``segments[index]`` the active segment and configure the timer.

        Manual segments and user-initiated starts configure a full-length
        run that starts on the user's own ``timer:start``. Scheduled
        activations configure the rest of the window: a run starting at the
        scheduled time plus ``elapsed_minutes``, shortened by as much, and hold a deferred ``timer:start(False)``.

        An index past the end publishes ``schedule:completed``.

        Raises:
            SchedulingError: If ``index`` is negative.
        """
        if index < 0:
            raise SchedulingError(f"Cannot activate segment {index}").with_context(segment_index=index)

        with self._lock:
            if index >= len(self._segments):
                self._bus.publish(EventName.SCHEDULE_COMPLETED)
                return

            segment = self._segments[index]
            segment.mark_activated()
            self._current_index = index
            self._is_active = True
            self._schedule_started = True
            self._stats.activations += 1

            with LogContext(segment_index=index):
                if segment.is_manual or user_initiated:
                    config = TimerConfig(
                        duration_seconds=segment.duration_seconds,
                        direction=segment.direction,
                    )
                    self._bus.publish(EventName.TIMER_CONFIGURE, config)
                else:
                    config = self._scheduled_run(segment, elapsed_minutes)
                    self._bus.publish(EventName.TIMER_CONFIGURE, config)
                    self._cancel_pending_activation()
                    self._pending_activation = self._deferrer.call_later(
                        self._settings.settle_delay_seconds,
                        self._fire_scheduled_start,
                        label="scheduled-start",
                    )

                logger.info(
                    "segment_activated",
                    elapsed_minutes=elapsed_minutes,
                    duration_seconds=config.duration_seconds,
                    direction=segment.direction.value,
                    manual=config.manual_start,
                )
                self._bus.publish(
                    EventName.SEGMENT_ACTIVE,
                    SegmentActive(
                        index=index,
                        segment=segment,
                        elapsed_minutes=elapsed_minutes,
                        total_segments=len(self._segments),
                    ),
                )

    def _scheduled_run(self, segment: Segment, elapsed_minutes: int) -> TimerConfig:
        now = self._clock.now()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_at = midnight + timedelta(minutes=segment.window_start_minute + elapsed_minutes)
        elapsed_seconds = elapsed_minutes * 60
        return TimerConfig(
            duration_seconds=max(1, segment.duration_seconds - elapsed_seconds),
            direction=segment.direction,
            start_at=start_at,
            elapsed_seconds=elapsed_seconds,
        )

    def _fire_scheduled_start(self) -> None:
        with self._lock:
            self._pending_activation = None
            if not self._is_active or self._user_paused:
                logger.debug("scheduled_start_dropped", index=self._current_index)
                return
            self._bus.publish(EventName.TIMER_START, False)

    # ------------------------------------------------------------------
    # User control and completion
    # ------------------------------------------------------------------

    def handle_manual_start(self) -> None:
        """User start: resume the current segment, or run an ad-hoc one."""
        with self._lock:
            if self._is_active:
                logger.debug("manual_start_ignored", reason="segment_active", index=self._current_index)
                return

            self._user_paused = False
            if self._current_index >= len(self._segments):
                segment = default_segment(self._settings.default_duration_minutes, self._clock.now())
                self._segments = [segment]
                self._current_index = 0
                logger.info("adhoc_segment_created", duration_minutes=segment.duration_minutes)

            self.activate(self._current_index, 0, user_initiated=True)

    def handle_stop(self) -> None:
        """User stop: pause scheduling without advancing the index."""
        with self._lock:
            self._is_active = False
            self._user_paused = True
            self._cancel_deferred()
            logger.info("schedule_paused", index=self._current_index)

    def handle_segment_completed(self) -> None:
        """Advance past a naturally completed segment. Repeated calls are no-ops."""
        with self._lock:
            if not self._is_active:
                logger.debug("completion_ignored", reason="no_active_segment")
                return

            self._is_active = False
            self._user_paused = False
            self._stats.segments_completed += 1
            logger.info("segment_finished", index=self._current_index)
            self._current_index += 1

            if self._current_index < len(self._segments):
                self._cancel_pending_recheck()
                self._pending_recheck = self._deferrer.call_later(
                    self._settings.completion_recheck_seconds,
                    self._recheck,
                    label="completion-recheck",
                )
            else:
                logger.info("schedule_completed", total=len(self._segments))
                self._bus.publish(EventName.SCHEDULE_COMPLETED)

    def _recheck(self) -> None:
        with self._lock:
            self._pending_recheck = None
            self.tick()

    # ------------------------------------------------------------------
    # State and lifecycle
    # ------------------------------------------------------------------

    def state(self) -> ScheduleSnapshot:
        with self._lock:
            return ScheduleSnapshot(
                segments=tuple(self._segments),
                current_index=self._current_index,
                is_active=self._is_active,
                user_paused=self._user_paused,
                schedule_started=self._schedule_started,
                activation_pending=self._pending_activation is not None
                and self._pending_activation.pending,
            )

    @property
    def segments(self) -> tuple[Segment, ...]:
        return tuple(self._segments)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def user_paused(self) -> bool:
        return self._user_paused

    @property
    def pending_activation(self) -> DeferredAction | None:
        return self._pending_activation

    @property
    def stats(self) -> SchedulerStats:
        return self._stats

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self._backend.is_running or not self._segments,
            "backend": self._backend.health(),
            "stats": self._stats.to_dict(),
        }

    def reset(self) -> None:
        """Stop ticking, cancel deferred work and drop the schedule."""
        self._backend.stop()

        with self._lock:
            self._cancel_deferred()
            self._segments = []
            self._current_index = 0
            self._is_active = False
            self._user_paused = False
            self._schedule_started = False
            logger.debug("scheduler_reset")

    def shutdown(self) -> None:
        self.reset()
        self.unsubscribe()

    def _cancel_pending_activation(self) -> None:
        if self._pending_activation is not None:
            self._pending_activation.cancel()
            self._pending_activation = None

    def _cancel_pending_recheck(self) -> None:
        if self._pending_recheck is not None:
            self._pending_recheck.cancel()
            self._pending_recheck = None

    def _cancel_deferred(self) -> None:
        self._cancel_pending_activation()
        self._cancel_pending_recheck()


__all__ = [
    "ScheduleSnapshot",
    "SchedulerStats",
    "SegmentScheduler",
]
