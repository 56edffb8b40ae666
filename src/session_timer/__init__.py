"""
session-timer - wall-clock scheduled countdown / count-up segments.

The core is three components that only talk over a message bus:

- ``SegmentScheduler`` (``session_timer.segments``): owns the segment list,
  ticks against the wall clock, handles user start/stop and advances on
  completion.
- ``TimerExecutionUnit`` (``session_timer.timer``): measures the running
  segment and announces its completion exactly once.
- ``InMemoryMessageBus`` (``session_timer.core.events``): synchronous,
  ordered, fault-isolated pub/sub.

``Session`` wires the three together for front ends such as the CLI.
"""

__version__ = "0.1.0"

from session_timer.core.enums import ActivationMode, Direction, ProgressBand
from session_timer.core.errors import (
    ConfigError,
    InvalidConfigError,
    SchedulingError,
    SegmentValidationError,
    SessionTimerError,
)
from session_timer.core.events import EventName, get_message_bus, set_message_bus
from session_timer.core.events.memory import InMemoryMessageBus
from session_timer.segments.models import Segment
from session_timer.segments.scheduler import ScheduleSnapshot, SegmentScheduler
from session_timer.session import Session, SessionFrame, SessionRunner
from session_timer.timer.unit import Progress, TimerExecutionUnit

__all__ = [
    "__version__",
    "ActivationMode",
    "ConfigError",
    "Direction",
    "EventName",
    "InMemoryMessageBus",
    "InvalidConfigError",
    "Progress",
    "ProgressBand",
    "ScheduleSnapshot",
    "SchedulingError",
    "Segment",
    "SegmentScheduler",
    "SegmentValidationError",
    "Session",
    "SessionFrame",
    "SessionRunner",
    "SessionTimerError",
    "TimerExecutionUnit",
    "get_message_bus",
    "set_message_bus",
]
