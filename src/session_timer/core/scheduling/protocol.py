"""Tick backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  TICK BACKEND PROTOCOL                                                        │
│                                                                               │
│  Backends control WHEN ticks happen; the SegmentScheduler controls WHAT      │
│  happens on each tick (wall-clock evaluation of the current segment).        │
│                                                                               │
│   ┌─────────────────┐       tick()       ┌──────────────────────┐            │
│   │  Thread Backend │ ─────────────────► │  SegmentScheduler    │            │
│   │  (default)      │                    │                      │            │
│   └─────────────────┘                    │  - paused / active?  │            │
│   ┌─────────────────┐       tick()       │  - compare minutes   │            │
│   │  APScheduler    │ ─────────────────► │  - activate / skip   │            │
│   └─────────────────┘                    └──────────────────────┘            │
│   ┌─────────────────┐       tick()                                           │
│   │  Manual (tests) │ ─────────────────►                                     │
│   └─────────────────┘                                                        │
│                                                                               │
│  A scheduler owns exactly one backend and restarts it (stop, then start)     │
│  whenever a new configuration is loaded.                                     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], None]


@runtime_checkable
class TickBackend(Protocol):
    """Protocol for pluggable tick timing backends.

    Implementations:
        - ThreadTickBackend: stdlib thread loop (default)
        - APSchedulerTickBackend: APScheduler interval job (``[apscheduler]`` extra)
        - ManualTickBackend: ticks only when a test calls ``fire()``
    """

    name: str

    def start(self, tick_callback: TickCallback, interval_seconds: float = 1.0) -> None:
        """Start calling ``tick_callback`` every ``interval_seconds``."""
        ...

    def stop(self) -> None:
        """Stop ticking. Must be safe to call when not started."""
        ...

    def health(self) -> dict[str, Any]:
        """Return at least ``healthy``, ``backend``, ``tick_count``, ``last_tick``."""
        ...

    @property
    def is_running(self) -> bool:
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
