"""Tests for the wall-clock abstractions."""

from datetime import datetime

import pytest

from session_timer.core.clock import (
    Clock,
    SteppedClock,
    SystemClock,
    format_hhmm,
    minutes_since_midnight,
)


class TestSteppedClock:
    def test_now_is_pinned(self):
        clock = SteppedClock(datetime(2026, 3, 2, 9, 0))
        assert clock.now() == datetime(2026, 3, 2, 9, 0)
        assert clock.now() == datetime(2026, 3, 2, 9, 0)

    def test_advance(self):
        clock = SteppedClock(datetime(2026, 3, 2, 9, 0))
        assert clock.advance(90) == datetime(2026, 3, 2, 9, 1, 30)
        assert clock.now() == datetime(2026, 3, 2, 9, 1, 30)

    def test_advance_rejects_negative(self):
        clock = SteppedClock(datetime(2026, 3, 2, 9, 0))
        with pytest.raises(ValueError):
            clock.advance(-1)

    def test_set_can_jump(self):
        clock = SteppedClock(datetime(2026, 3, 2, 9, 0))
        clock.set(datetime(2026, 3, 2, 8, 0))
        assert clock.now().hour == 8

    def test_implements_protocol(self):
        assert isinstance(SteppedClock(datetime(2026, 1, 1)), Clock)
        assert isinstance(SystemClock(), Clock)


class TestHelpers:
    def test_minutes_since_midnight(self):
        assert minutes_since_midnight(datetime(2026, 3, 2, 0, 0)) == 0
        assert minutes_since_midnight(datetime(2026, 3, 2, 14, 30, 59)) == 870

    def test_format_hhmm_pads(self):
        assert format_hhmm(datetime(2026, 3, 2, 9, 5)) == "09:05"

    def test_system_clock_is_naive_local(self):
        assert SystemClock().now().tzinfo is None
