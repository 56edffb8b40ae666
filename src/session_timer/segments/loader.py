"""Configuration payload validation and segment construction.

The ``config:ready`` payload comes from outside the core (URL parser, preset
picker, the CLI) in one of two shapes::

    {"segments": [{"time": "10:00", "duration": 20, "mode": "down"}, ...]}

    {"segmentDuration": 1200, "countDown": true,
     "autoStart": "10:00", "manualStart": false}

Both are validated here with pydantic so that malformed times and durations
never reach the scheduler. ``build_segments`` then turns a validated
``ScheduleConfig`` into the ordered ``Segment`` list, deciding per segment
whether wall-clock ticks may activate it.

Usage::

    config = parse_config(payload)             # raises InvalidConfigError
    segments = build_segments(config, clock.now())

Classification rules:
    multi-segment   a segment whose time equals the load-time HH:MM is a
                    preset picked from the UI -> MANUAL; all others SCHEDULED
    single timer    manualStart -> MANUAL; else autoStart -> SCHEDULED
                    anchored at autoStart; neither -> MANUAL
    empty payload   one default MANUAL count-down segment

Tags:
    session-timer, configuration, pydantic, validation
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, time
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from session_timer.core.enums import ActivationMode, Direction
from session_timer.core.errors import InvalidConfigError
from session_timer.core.logging import get_logger
from session_timer.segments.models import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    TIME_PATTERN,
    Segment,
    default_segment,
    parse_hhmm,
)

logger = get_logger(__name__)

HHMM = Annotated[str, StringConstraints(strip_whitespace=True, pattern=TIME_PATTERN.pattern)]


class SegmentSpec(BaseModel):
    """One entry of a multi-segment payload."""

    model_config = ConfigDict(extra="ignore")

    time: HHMM = Field(..., description="End time (down) or start time (up), 24-hour HH:MM")
    duration: int = Field(
        ..., ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES, description="Minutes"
    )
    mode: Literal["up", "down"] = Field(default="down", description="Count direction")

    @property
    def direction(self) -> Direction:
        return Direction(self.mode)


class ScheduleConfig(BaseModel):
    """Validated ``config:ready`` payload.

    Field names follow the wire format (``segmentDuration``, ``countDown``...)
    through aliases; Python code uses the snake_case attributes.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    segments: list[SegmentSpec] | None = None
    segment_duration: int | None = Field(
        default=None, alias="segmentDuration", gt=0, description="Single-timer length in seconds"
    )
    count_down: bool = Field(default=True, alias="countDown")
    auto_start: HHMM | None = Field(default=None, alias="autoStart")
    manual_start: bool = Field(default=False, alias="manualStart")

    @property
    def is_multi_segment(self) -> bool:
        return bool(self.segments)

    @property
    def is_single_timer(self) -> bool:
        return not self.is_multi_segment and self.segment_duration is not None

    @property
    def is_empty(self) -> bool:
        return not self.is_multi_segment and not self.is_single_timer


def parse_config(payload: ScheduleConfig | Mapping[str, Any] | None) -> ScheduleConfig:
    """Validate a ``config:ready`` payload.

    Raises:
        InvalidConfigError: naming the first offending field, with the
            pydantic ``ValidationError`` chained as ``cause``.
    """
    if isinstance(payload, ScheduleConfig):
        return payload
    if payload is None:
        return ScheduleConfig()
    if not isinstance(payload, Mapping):
        raise InvalidConfigError(
            "config", payload, f"Configuration must be an object, got {type(payload).__name__}"
        )

    try:
        return ScheduleConfig.model_validate(dict(payload))
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"]) or "config"
        raise InvalidConfigError(
            key,
            first.get("input"),
            f"Invalid configuration for {key}: {first['msg']}",
            cause=e,
        ) from e


def build_segments(
    config: ScheduleConfig,
    now: datetime,
    default_minutes: int = 40,
) -> list[Segment]:
    """Build the ordered segment list for a validated configuration.

    ``now`` is the load-time wall clock, used for preset detection.
    """
    if config.is_multi_segment:
        now_hhmm = time(now.hour, now.minute)
        segments = []
        for entry in config.segments or []:
            scheduled = parse_hhmm(entry.time)
            is_preset = scheduled == now_hhmm
            segments.append(
                Segment(
                    scheduled_time=scheduled,
                    duration_seconds=entry.duration * 60,
                    direction=entry.direction,
                    activation_mode=ActivationMode.MANUAL if is_preset else ActivationMode.SCHEDULED,
                )
            )
        return segments

    if config.is_single_timer:
        scheduled = config.auto_start is not None and not config.manual_start
        return [
            Segment(
                scheduled_time=parse_hhmm(config.auto_start) if config.auto_start else time(0, 0),
                duration_seconds=config.segment_duration,
                direction=Direction.from_count_down(config.count_down),
                activation_mode=ActivationMode.SCHEDULED if scheduled else ActivationMode.MANUAL,
            )
        ]

    logger.debug("empty_config_default_segment", minutes=default_minutes)
    return [default_segment(default_minutes, now)]


__all__ = [
    "HHMM",
    "ScheduleConfig",
    "SegmentSpec",
    "build_segments",
    "parse_config",
]
