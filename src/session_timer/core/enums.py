"""
Shared enums for the session timer.

Enums in this module are used by segments, the timer unit and the CLI,
so they live in core to avoid import cycles between those packages.

STDLIB ONLY - NO PYDANTIC.
"""

from enum import Enum


class Direction(str, Enum):
    """
    Which way a segment's clock runs.

    The value doubles as the wire ``mode`` field in configuration payloads
    and ``segment:completed`` events.
    """

    COUNT_DOWN = "down"
    COUNT_UP = "up"

    @property
    def counts_down(self) -> bool:
        return self is Direction.COUNT_DOWN

    @classmethod
    def from_count_down(cls, count_down: bool) -> "Direction":
        return cls.COUNT_DOWN if count_down else cls.COUNT_UP


class ActivationMode(str, Enum):
    """
    How a segment may become active.

    MANUAL segments only start from an explicit user action. SCHEDULED
    segments are activated by the scheduler tick once the wall clock reaches
    their start minute.
    """

    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ProgressBand(str, Enum):
    """Colour band of a running segment, derived from remaining minutes."""

    GREEN = "green"
    ORANGE = "orange"
    RED = "red"
