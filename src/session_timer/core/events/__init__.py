"""Event contract and message bus for the session timer.

Why This Package Exists
-----------------------
The scheduler, the timer unit and the outer collaborators (terminal
renderer, gesture handlers, configuration loader) must not hold references
to each other. They communicate only by publishing named events with a
single payload on a shared bus, so each component owns its own state and
reacts to the others' signals.

Usage::

    from session_timer.core.events import EventName, get_message_bus

    bus = get_message_bus()
    bus.subscribe(EventName.SEGMENT_ACTIVE, lambda active: print(active.index))
    bus.publish(EventName.TIMER_START, True)

Event flow::

    loader ──config:ready──► SegmentScheduler ──timer:configure──► TimerExecutionUnit
    UI ─────timer:start────► SegmentScheduler, TimerExecutionUnit
    UI ─────timer:stop─────► SegmentScheduler, TimerExecutionUnit
    TimerExecutionUnit ──segment:completed──► SegmentScheduler

Modules
-------
memory      InMemoryMessageBus -- synchronous, same-thread, fault-isolated
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from session_timer.core.clock import format_hhmm
from session_timer.core.enums import Direction

if TYPE_CHECKING:
    from session_timer.segments.models import Segment

__all__ = [
    "EventName",
    "EventHandler",
    "MessageBus",
    "TimerConfig",
    "TimerConfigured",
    "SegmentsConfigured",
    "SegmentActive",
    "TimerStarted",
    "TimerStartedMidSession",
    "SegmentCompleted",
    "event_key",
    "get_message_bus",
    "set_message_bus",
]


# ── Event names ──────────────────────────────────────────────────────────


class EventName(str, Enum):
    """Names of every event exchanged over the bus."""

    # Consumed by the core
    CONFIG_READY = "config:ready"
    TIMER_START = "timer:start"
    TIMER_STOP = "timer:stop"
    TIMER_CONFIGURE = "timer:configure"

    # Published by the core
    SEGMENTS_CONFIGURED = "segments:configured"
    SEGMENT_ACTIVE = "segment:active"
    TIMER_CONFIGURED = "timer:configured"
    TIMER_STARTED = "timer:started"
    TIMER_STARTED_MID_SESSION = "timer:started-mid-session"
    TIMER_STOPPED = "timer:stopped"
    SEGMENT_COMPLETED = "segment:completed"
    SCHEDULE_COMPLETED = "schedule:completed"


def event_key(event: EventName | str) -> str:
    """Normalize an event name to its wire string."""
    if isinstance(event, Enum):
        return event.value
    return str(event)


# ── Payloads ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimerConfig:
    """Payload of ``timer:configure``: the run the timer unit should perform next.

    Attributes:
        duration_seconds: Nominal run length, already reduced for mid-session joins
        direction: Count down or count up
        start_at: Backdated start instant used by scheduled starts; None means "now"
        elapsed_seconds: Portion of the segment already consumed before this run
    """

    duration_seconds: int
    direction: Direction = Direction.COUNT_DOWN
    start_at: datetime | None = None
    elapsed_seconds: int = 0

    @property
    def manual_start(self) -> bool:
        return self.start_at is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "segmentDuration": self.duration_seconds,
            "countDown": self.direction.counts_down,
            "autoStart": format_hhmm(self.start_at) if self.start_at else None,
            "manualStart": self.manual_start,
        }


@dataclass(frozen=True)
class TimerConfigured:
    duration_seconds: int
    direction: Direction
    start_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "segmentDuration": self.duration_seconds,
            "countDown": self.direction.counts_down,
            "autoStart": format_hhmm(self.start_at) if self.start_at else None,
            "ready": True,
        }


@dataclass(frozen=True)
class SegmentsConfigured:
    segments: tuple[Segment, ...]

    @property
    def total_segments(self) -> int:
        return len(self.segments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "segments": [segment.to_dict() for segment in self.segments],
            "totalSegments": self.total_segments,
        }


@dataclass(frozen=True)
class SegmentActive:
    index: int
    segment: Segment
    elapsed_minutes: int
    total_segments: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "segment": self.segment.to_dict(),
            "elapsedMinutes": self.elapsed_minutes,
            "totalSegments": self.total_segments,
        }


@dataclass(frozen=True)
class TimerStarted:
    time: str
    manual: bool

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "manual": self.manual}


@dataclass(frozen=True)
class TimerStartedMidSession:
    elapsed: int

    def to_dict(self) -> dict[str, Any]:
        return {"elapsed": self.elapsed}


@dataclass(frozen=True)
class SegmentCompleted:
    duration_minutes: int
    mode: Direction
    was_manual: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "durationMinutes": self.duration_minutes,
            "mode": self.mode.value,
            "wasManual": self.was_manual,
        }


# ── Bus protocol ─────────────────────────────────────────────────────────

EventHandler = Callable[[Any], None]


@runtime_checkable
class MessageBus(Protocol):
    """Protocol for synchronous message bus implementations.

    Delivery is in subscription order; a failing handler is logged and
    never affects the publisher or sibling handlers.
    """

    def subscribe(self, event: EventName | str, handler: EventHandler) -> None:
        ...

    def subscribe_once(self, event: EventName | str, handler: EventHandler) -> None:
        ...

    def unsubscribe(self, event: EventName | str, handler: EventHandler) -> bool:
        ...

    def publish(self, event: EventName | str, payload: Any = None) -> int:
        ...


# ── Default message bus singleton ────────────────────────────────────────

_message_bus: MessageBus | None = None


def get_message_bus() -> MessageBus:
    """Get the process-wide message bus, creating an in-memory one on first use."""
    global _message_bus
    if _message_bus is None:
        from session_timer.core.events.memory import InMemoryMessageBus

        _message_bus = InMemoryMessageBus()
    return _message_bus


def set_message_bus(bus: MessageBus | None) -> None:
    """Replace (or with None, drop) the process-wide message bus."""
    global _message_bus
    _message_bus = bus
