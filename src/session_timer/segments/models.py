"""Segment model and wall-clock helpers.

A ``Segment`` is one timer run anchored to a time of day. The nominal run it
describes depends on the direction:

    COUNT_DOWN  scheduled_time is the END    start = scheduled_time - duration
    COUNT_UP    scheduled_time is the START  start = scheduled_time

The activation window the scheduler ticks against is the same for both
directions: ``[scheduled_time, scheduled_time + duration)``. A count-down
segment {10:00, 20} opened at 10:05 therefore joins with 5 minutes gone and
runs the remaining 15 minutes to 10:20.

Everything the scheduler compares is expressed in whole minutes since local
midnight. Derived start minutes are not wrapped, so a count-down segment
ending at 00:10 with a 30 minute duration starts at minute -20.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any

from session_timer.core.clock import minutes_since_midnight
from session_timer.core.enums import ActivationMode, Direction
from session_timer.core.errors import SegmentValidationError

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 480


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``H:MM``/``HH:MM`` string.

    Raises:
        SegmentValidationError: If the string is not a valid time of day.
    """
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise SegmentValidationError(
            f"Invalid time {value!r}, expected HH:MM", field="time", value=value
        )
    return time(int(match.group(1)), int(match.group(2)))


def round_minutes(seconds: int) -> int:
    """Round whole seconds to the nearest minute, halves rounding up."""
    return (seconds + 30) // 60


@dataclass(eq=False)
class Segment:
    """One scheduled or manual timer run.

    Everything except ``activated`` is fixed at construction. ``activated``
    flips to True once, when the scheduler activates the segment, and is
    never reset for the lifetime of the loaded list.
    """

    scheduled_time: time
    duration_seconds: int
    direction: Direction = Direction.COUNT_DOWN
    activation_mode: ActivationMode = ActivationMode.SCHEDULED
    activated: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.duration_seconds, bool) or not isinstance(self.duration_seconds, int):
            raise SegmentValidationError(
                "Segment duration must be a whole number of seconds",
                field="duration_seconds",
                value=self.duration_seconds,
            )
        if self.duration_seconds <= 0:
            raise SegmentValidationError(
                "Segment duration must be positive",
                field="duration_seconds",
                value=self.duration_seconds,
            )
        self.direction = Direction(self.direction)
        self.activation_mode = ActivationMode(self.activation_mode)

    @property
    def duration_minutes(self) -> int:
        return round_minutes(self.duration_seconds)

    @property
    def scheduled_minute(self) -> int:
        return self.scheduled_time.hour * 60 + self.scheduled_time.minute

    @property
    def start_minute(self) -> int:
        """Derived start of the nominal run, per direction."""
        if self.direction is Direction.COUNT_DOWN:
            return self.scheduled_minute - self.duration_minutes
        return self.scheduled_minute

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def window_start_minute(self) -> int:
        """Minute since midnight at which the scheduler may activate the segment."""
        return self.scheduled_minute

    @property
    def window_end_minute(self) -> int:
        return self.scheduled_minute + self.duration_minutes

    @property
    def is_manual(self) -> bool:
        return self.activation_mode is ActivationMode.MANUAL

    def mark_activated(self) -> None:
        self.activated = True

    def window_status(self, now: datetime) -> str:
        """Classify ``now`` against the activation window: ``pending``, ``live`` or ``expired``."""
        minute = minutes_since_midnight(now)
        if minute < self.window_start_minute:
            return "pending"
        if minute < self.window_end_minute:
            return "live"
        return "expired"

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": f"{self.scheduled_time.hour:02d}:{self.scheduled_time.minute:02d}",
            "duration": self.duration_minutes,
            "durationSec": self.duration_seconds,
            "mode": self.direction.value,
            "manualStart": self.is_manual,
            "activated": self.activated,
        }

    def __repr__(self) -> str:
        return (
            f"Segment({self.scheduled_time:%H:%M}, {self.duration_seconds}s, "
            f"{self.direction.value}, {self.activation_mode.value}"
            f"{', activated' if self.activated else ''})"
        )


def default_segment(minutes: int, now: datetime) -> Segment:
    """Ad-hoc manual count-down segment anchored at ``now``."""
    return Segment(
        scheduled_time=time(now.hour, now.minute),
        duration_seconds=minutes * 60,
        direction=Direction.COUNT_DOWN,
        activation_mode=ActivationMode.MANUAL,
    )


__all__ = [
    "MAX_DURATION_MINUTES",
    "MIN_DURATION_MINUTES",
    "Segment",
    "TIME_PATTERN",
    "default_segment",
    "parse_hhmm",
    "round_minutes",
]
