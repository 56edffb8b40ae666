"""Tests for session_timer.core.events: event names, payloads, default bus."""

from datetime import datetime, time

from session_timer.core.enums import ActivationMode, Direction
from session_timer.core.events import (
    EventName,
    MessageBus,
    SegmentActive,
    SegmentCompleted,
    SegmentsConfigured,
    TimerConfig,
    TimerConfigured,
    TimerStarted,
    TimerStartedMidSession,
    event_key,
    get_message_bus,
    set_message_bus,
)
from session_timer.core.events.memory import InMemoryMessageBus
from session_timer.segments.models import Segment


def _segment(**kwargs) -> Segment:
    defaults = dict(scheduled_time=time(10, 0), duration_seconds=1200)
    defaults.update(kwargs)
    return Segment(**defaults)


class TestEventName:
    def test_wire_names(self):
        assert EventName.CONFIG_READY.value == "config:ready"
        assert EventName.TIMER_STARTED_MID_SESSION.value == "timer:started-mid-session"
        assert EventName.SCHEDULE_COMPLETED.value == "schedule:completed"

    def test_event_key_normalizes_enum_and_string(self):
        assert event_key(EventName.TIMER_STOP) == "timer:stop"
        assert event_key("timer:stop") == "timer:stop"

    def test_enum_and_string_reach_same_subscribers(self):
        bus = InMemoryMessageBus()
        seen = []
        bus.subscribe("timer:stop", seen.append)
        bus.publish(EventName.TIMER_STOP, 1)
        assert seen == [1]


class TestPayloads:
    def test_timer_config_manual_when_no_start(self):
        config = TimerConfig(duration_seconds=600)
        assert config.manual_start is True
        assert config.to_dict() == {
            "segmentDuration": 600,
            "countDown": True,
            "autoStart": None,
            "manualStart": True,
        }

    def test_timer_config_backdated(self):
        config = TimerConfig(
            duration_seconds=900,
            direction=Direction.COUNT_UP,
            start_at=datetime(2026, 3, 2, 9, 45),
            elapsed_seconds=300,
        )
        assert config.manual_start is False
        wire = config.to_dict()
        assert wire["autoStart"] == "09:45"
        assert wire["countDown"] is False

    def test_timer_configured_ready_flag(self):
        wire = TimerConfigured(duration_seconds=60, direction=Direction.COUNT_DOWN).to_dict()
        assert wire["ready"] is True

    def test_segments_configured_total(self):
        payload = SegmentsConfigured(segments=(_segment(), _segment(scheduled_time=time(11, 0))))
        assert payload.total_segments == 2
        wire = payload.to_dict()
        assert wire["totalSegments"] == 2
        assert wire["segments"][1]["time"] == "11:00"

    def test_segment_active_wire_keys(self):
        payload = SegmentActive(index=1, segment=_segment(), elapsed_minutes=5, total_segments=3)
        wire = payload.to_dict()
        assert wire["index"] == 1
        assert wire["elapsedMinutes"] == 5
        assert wire["totalSegments"] == 3
        assert wire["segment"]["duration"] == 20

    def test_timer_started_and_mid_session(self):
        assert TimerStarted(time="10:05", manual=False).to_dict() == {"time": "10:05", "manual": False}
        assert TimerStartedMidSession(elapsed=300).to_dict() == {"elapsed": 300}

    def test_segment_completed_wire_keys(self):
        wire = SegmentCompleted(duration_minutes=20, mode=Direction.COUNT_UP, was_manual=True).to_dict()
        assert wire == {"durationMinutes": 20, "mode": "up", "wasManual": True}

    def test_manual_segment_serializes_manual_start(self):
        wire = _segment(activation_mode=ActivationMode.MANUAL).to_dict()
        assert wire["manualStart"] is True


class TestDefaultBus:
    def test_get_creates_in_memory_bus(self):
        set_message_bus(None)
        bus = get_message_bus()
        assert isinstance(bus, InMemoryMessageBus)
        assert get_message_bus() is bus

    def test_set_replaces_bus(self):
        custom = InMemoryMessageBus()
        set_message_bus(custom)
        assert get_message_bus() is custom

    def test_in_memory_bus_implements_protocol(self):
        assert isinstance(InMemoryMessageBus(), MessageBus)
