"""Timer execution unit."""

from session_timer.timer.unit import Progress, TimerExecutionUnit, TimerRunState, progress_band

__all__ = ["Progress", "TimerExecutionUnit", "TimerRunState", "progress_band"]
