"""Segments: the model, the configuration loader and the scheduler."""

from session_timer.segments.loader import ScheduleConfig, SegmentSpec, build_segments, parse_config
from session_timer.segments.models import Segment, default_segment, parse_hhmm
from session_timer.segments.scheduler import ScheduleSnapshot, SchedulerStats, SegmentScheduler

__all__ = [
    "ScheduleConfig",
    "ScheduleSnapshot",
    "SchedulerStats",
    "Segment",
    "SegmentScheduler",
    "SegmentSpec",
    "build_segments",
    "default_segment",
    "parse_config",
    "parse_hhmm",
]
