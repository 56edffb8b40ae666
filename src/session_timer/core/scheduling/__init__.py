"""Tick sources for the segment scheduler.

Manifesto:
    The scheduler must re-evaluate the wall clock once per second, but the
    thing that produces that beat differs by host: a daemon thread for the
    CLI, an existing APScheduler for embedding hosts, a hand-cranked source
    for tests. Backends own *when*; the scheduler owns *what*.

Backends:
    • ThreadTickBackend (default, stdlib only)
    • APSchedulerTickBackend (``[apscheduler]`` extra, imported lazily)
    • ManualTickBackend (tests)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .manual_backend import ManualTickBackend
from .protocol import BackendHealth, TickBackend, TickCallback
from .thread_backend import ThreadTickBackend

if TYPE_CHECKING:
    from .apscheduler_backend import APSchedulerTickBackend


def create_backend(name: str) -> TickBackend:
    """Build a tick backend by name ("thread", "apscheduler" or "manual")."""
    if name == "thread":
        return ThreadTickBackend()
    if name == "apscheduler":
        from .apscheduler_backend import APSchedulerTickBackend

        return APSchedulerTickBackend()
    if name == "manual":
        return ManualTickBackend()
    raise ValueError(f"Unknown tick backend: {name!r}")


def __getattr__(name: str):
    if name == "APSchedulerTickBackend":
        from .apscheduler_backend import APSchedulerTickBackend

        return APSchedulerTickBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "APSchedulerTickBackend",
    "BackendHealth",
    "ManualTickBackend",
    "ThreadTickBackend",
    "TickBackend",
    "TickCallback",
    "create_backend",
]
