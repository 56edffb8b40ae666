"""End-to-end behaviour of a wired Session under simulated time.

Every test drives the scheduler and the timer unit through the message bus
only; ``advance`` steps the stepped clock one second at a time, running
deferred actions, firing a tick and updating the timer in that order.
"""

from datetime import datetime

import pytest

from session_timer.core.errors import InvalidConfigError
from session_timer.core.events import EventName
from session_timer.session import Session, SessionRunner


def _open(session, *segments):
    return session.open(
        {"segments": [{"time": t, "duration": d, "mode": m} for t, d, m in segments]}
    )


class TestMidSessionJoin:
    def test_join_starts_backdated_and_completes_on_time(self, session, clock, advance, events):
        # count-down 10:00 + 20 opened at 10:05: the remaining 15 minutes run to 10:20
        _open(session, ("10:00", 20, "down"))

        active = events.last(EventName.SEGMENT_ACTIVE)
        assert active.elapsed_minutes == 5
        assert not session.timer.is_running

        advance(1)
        assert session.timer.is_running
        assert events.last(EventName.TIMER_STARTED).manual is False
        assert events.last(EventName.TIMER_STARTED_MID_SESSION).elapsed == 301
        assert session.timer.progress().duration_seconds == 15 * 60

        advance(898)
        assert events.count(EventName.SEGMENT_COMPLETED) == 0
        advance(1)
        assert clock.now() == datetime(2026, 3, 2, 10, 20)
        assert events.count(EventName.SEGMENT_COMPLETED) == 1
        assert session.schedule_completed

    def test_late_open_skips_expired_and_joins_next(self, session, advance, events):
        _open(session, ("09:00", 10, "down"), ("09:55", 20, "down"), ("11:00", 10, "up"))

        state = session.scheduler.state()
        assert state.current_index == 1
        assert not state.segments[0].activated
        assert events.last(EventName.SEGMENT_ACTIVE).elapsed_minutes == 10

        advance(1)
        assert session.timer.progress().duration_seconds == 10 * 60


class TestUserControl:
    def test_stop_cancels_pending_auto_start(self, session, advance, events):
        _open(session, ("10:00", 20, "down"))
        assert session.scheduler.pending_activation is not None

        session.stop()
        advance(5)

        assert not session.timer.is_running
        assert events.count(EventName.TIMER_STARTED) == 0

    def test_stop_then_start_resumes_same_index(self, session, advance, events):
        _open(session, ("10:00", 20, "down"), ("11:00", 20, "down"))
        advance(2)
        assert session.timer.is_running

        session.stop()
        assert events.count(EventName.TIMER_STOPPED) == 1
        assert session.scheduler.user_paused

        session.start()
        assert session.scheduler.current_index == 0
        assert session.timer.is_running
        assert events.last(EventName.TIMER_STARTED).manual is True
        assert session.timer.progress().duration_seconds == 20 * 60

    def test_paused_session_ignores_later_segments(self, session, clock, advance, events):
        _open(session, ("10:00", 20, "down"), ("10:30", 5, "up"))
        advance(2)
        session.stop()

        clock.set(datetime(2026, 3, 2, 10, 29, 59))
        advance(10)
        assert events.count(EventName.SEGMENT_ACTIVE) == 1
        assert not session.timer.is_running

    def test_toggle(self, session):
        session.open({"segmentDuration": 300})
        session.toggle()
        assert session.timer.is_running
        session.toggle()
        assert not session.timer.is_running

    def test_manual_single_timer(self, session, advance, events):
        session.open({"segmentDuration": 600, "countDown": False})
        advance(10)
        assert events.count(EventName.TIMER_STARTED) == 0
        assert session.idle

        session.start()
        advance(600)

        completed = events.last(EventName.SEGMENT_COMPLETED)
        assert completed.duration_minutes == 10
        assert completed.was_manual is True
        assert completed.to_dict()["mode"] == "up"
        assert session.schedule_completed
        assert session.idle

    def test_start_after_schedule_completed_runs_adhoc_segment(self, session, advance, events):
        session.open({"segmentDuration": 60})
        session.start()
        advance(60)
        assert session.schedule_completed

        session.start()
        assert session.timer.is_running
        assert session.timer.progress().duration_seconds == 40 * 60
        assert len(session.scheduler.segments) == 1

    def test_preset_segment_waits_for_user(self, session, advance, events):
        _open(session, ("10:05", 20, "down"))
        advance(30)
        assert events.count(EventName.SEGMENT_ACTIVE) == 0
        assert session.scheduler.segments[0].is_manual


class TestSequencing:
    def test_completion_advances_to_next_scheduled_segment(self, session, advance, events):
        _open(session, ("10:00", 20, "down"), ("10:25", 10, "up"))
        advance(900)

        state = session.scheduler.state()
        assert state.current_index == 1
        assert not state.is_active
        assert not state.user_paused
        assert not session.idle

        advance(301)
        assert events.last(EventName.SEGMENT_ACTIVE).index == 1
        assert session.timer.is_running

        advance(599)
        assert session.schedule_completed
        assert events.count(EventName.SEGMENT_COMPLETED) == 2

    def test_repeated_completion_signal_has_no_effect(self, session, bus, advance):
        _open(session, ("10:00", 20, "down"), ("12:00", 20, "down"))
        advance(900)
        assert session.scheduler.current_index == 1

        bus.publish(EventName.SEGMENT_COMPLETED)
        assert session.scheduler.current_index == 1

    def test_single_active_segment_and_sticky_flags(self, session, advance):
        _open(
            session,
            ("10:06", 3, "down"),
            ("10:08", 3, "up"),
            ("10:12", 4, "down"),
            ("10:15", 2, "up"),
        )
        seen_activated: set[int] = set()
        for _ in range(15 * 60):
            advance(1)
            state = session.scheduler.state()
            if session.timer.is_running:
                assert state.is_active
            now_activated = {i for i, s in enumerate(state.segments) if s.activated}
            assert seen_activated <= now_activated
            seen_activated = now_activated

        assert seen_activated == {0, 1, 2, 3}

    def test_reload_while_active_resets(self, session, advance, events):
        _open(session, ("10:00", 20, "down"))
        advance(2)
        assert session.timer.is_running

        _open(session, ("12:00", 20, "down"), ("13:00", 20, "down"))

        state = session.scheduler.state()
        assert not session.timer.is_running
        assert not state.is_active
        assert not state.user_paused
        assert not any(s.activated for s in state.segments)
        assert events.count(EventName.TIMER_STOPPED) == 1
        assert not session.schedule_completed


class TestConfigurationBoundary:
    def test_invalid_config_is_rejected_before_publish(self, session, events):
        with pytest.raises(InvalidConfigError):
            session.open({"segments": [{"time": "10:7x", "duration": 20}]})
        assert events.count(EventName.CONFIG_READY) == 0

    def test_empty_config_gives_default_manual_segment(self, session):
        (segment,) = session.open({})
        assert segment.is_manual
        assert segment.duration_minutes == 40

    def test_failing_subscriber_does_not_stop_the_core(self, session, bus, advance):
        def broken(_payload):
            raise RuntimeError("renderer exploded")

        bus.subscribe(EventName.SEGMENT_ACTIVE, broken)
        _open(session, ("10:00", 20, "down"))
        advance(1)
        assert session.timer.is_running


class TestFrames:
    def test_frame_snapshot(self, session, advance):
        _open(session, ("10:00", 20, "down"))
        advance(1)

        frame = session.frame()
        assert frame.now == datetime(2026, 3, 2, 10, 5, 1)
        assert frame.active_segment is frame.schedule.segments[0]
        assert frame.progress.running
        assert not frame.schedule_completed

    def test_frame_without_active_segment(self, session):
        session.open({"segmentDuration": 60})
        assert session.frame().active_segment is None

    def test_close_is_idempotent(self, bus, events, clock, deferrer, backend, settings):
        baseline = bus.listener_count()
        with Session(bus=bus, clock=clock, deferrer=deferrer, backend=backend, settings=settings) as s:
            assert bus.listener_count() > baseline
        s.close()
        assert bus.listener_count() == baseline
        assert not backend.is_running


class TestSessionRunner:
    @pytest.fixture
    def step(self, clock, deferrer, backend):
        def _sleep(seconds):
            clock.advance(seconds)
            deferrer.run_due()
            backend.fire()

        return _sleep

    def test_runs_until_schedule_completes(self, session, step):
        session.open({"segmentDuration": 60})
        session.start()
        frames = []

        count = SessionRunner(session, on_frame=frames.append, interval_seconds=1.0, sleep=step).run()

        assert count == 61
        assert frames[-1].schedule_completed
        assert frames[0].progress.running

    def test_stops_immediately_when_idle(self, session, step):
        session.open({"segmentDuration": 60})
        assert SessionRunner(session, interval_seconds=1.0, sleep=step).run() == 1

    def test_waits_for_pending_scheduled_segment(self, session, step):
        _open(session, ("10:10", 2, "up"))
        count = SessionRunner(session, interval_seconds=1.0, sleep=step).run()
        # frames at 10:05:00 through 10:12:00 inclusive
        assert count == 7 * 60 + 1

    def test_max_frames(self, session, step):
        session.open({"segmentDuration": 60})
        runner = SessionRunner(session, interval_seconds=1.0, sleep=step)
        assert runner.run(max_frames=3, keep_open=True) == 3

    def test_request_stop(self, session, step):
        session.open({"segmentDuration": 60})
        runner = SessionRunner(session, interval_seconds=1.0, sleep=step)
        runner.on_frame = lambda _frame: runner.request_stop()
        assert runner.run(keep_open=True) == 1

    def test_default_interval_from_settings(self, session, settings):
        assert SessionRunner(session).interval_seconds == settings.frame_interval_seconds
