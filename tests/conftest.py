"""
Shared pytest fixtures for session-timer tests.

This module provides:
- A stepped wall clock, a manual deferrer and a manual tick backend so
  scheduling is fully deterministic (no real sleeping)
- An ``EventRecorder`` that captures everything published on the bus
- A wired ``Session`` built from the deterministic pieces
- Global-state cleanup (structlog config, default bus, settings cache)

Usage:
    def test_something(session, clock, advance, events):
        session.open({"segments": [{"time": "10:20", "duration": 20}]})
        advance(60)
        assert events.names()[-1] == "timer:started"
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
import structlog

from session_timer.core.clock import SteppedClock
from session_timer.core.deferred import ManualDeferrer
from session_timer.core.events import EventName, set_message_bus
from session_timer.core.events.memory import InMemoryMessageBus
from session_timer.core.logging import clear_context
from session_timer.core.scheduling import ManualTickBackend
from session_timer.core.settings import SessionTimerSettings, clear_settings_cache
from session_timer.session import Session

# Monday 2 March 2026, 10:05:00 local time.
START = datetime(2026, 3, 2, 10, 5, 0)


class EventRecorder:
    """Subscribes to every event name and records (name, payload) pairs."""

    def __init__(self, bus: InMemoryMessageBus) -> None:
        self.records: list[tuple[str, Any]] = []
        for name in EventName:
            bus.subscribe(name, self._handler(name.value))

    def _handler(self, name: str):
        def record(payload: Any = None) -> None:
            self.records.append((name, payload))

        return record

    def names(self) -> list[str]:
        return [name for name, _ in self.records]

    def of(self, event: EventName) -> list[Any]:
        return [payload for name, payload in self.records if name == event.value]

    def count(self, event: EventName) -> int:
        return len(self.of(event))

    def last(self, event: EventName) -> Any:
        payloads = self.of(event)
        assert payloads, f"no {event.value} published"
        return payloads[-1]

    def clear(self) -> None:
        self.records.clear()


# =============================================================================
# Global state isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset process-wide state touched by the code under test."""
    yield
    structlog.reset_defaults()
    clear_context()
    set_message_bus(None)
    clear_settings_cache()


# =============================================================================
# Deterministic building blocks
# =============================================================================


@pytest.fixture
def settings() -> SessionTimerSettings:
    return SessionTimerSettings(_env_file=None)


@pytest.fixture
def clock() -> SteppedClock:
    return SteppedClock(START)


@pytest.fixture
def deferrer(clock: SteppedClock) -> ManualDeferrer:
    return ManualDeferrer(clock)


@pytest.fixture
def backend() -> ManualTickBackend:
    return ManualTickBackend()


@pytest.fixture
def bus() -> InMemoryMessageBus:
    return InMemoryMessageBus()


@pytest.fixture
def events(bus: InMemoryMessageBus) -> EventRecorder:
    return EventRecorder(bus)


@pytest.fixture
def session(bus, events, clock, deferrer, backend, settings) -> Session:
    """A wired session; the event recorder is subscribed before the core."""
    s = Session(bus=bus, clock=clock, deferrer=deferrer, backend=backend, settings=settings)
    yield s
    s.close()


@pytest.fixture
def advance(clock: SteppedClock, deferrer: ManualDeferrer, backend: ManualTickBackend, session: Session):
    """Step simulated time second by second: run due deferred actions, tick, update the timer."""

    def _advance(seconds: int) -> None:
        for _ in range(seconds):
            clock.advance(1)
            deferrer.run_due()
            backend.fire()
            session.timer.update()

    return _advance
