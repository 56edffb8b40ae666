"""Rich rendering of session frames for ``session-timer run``."""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.text import Text

from session_timer.core.clock import format_hhmm
from session_timer.core.enums import ProgressBand
from session_timer.session import SessionFrame

BAND_COLOURS = {
    ProgressBand.GREEN: "green",
    ProgressBand.ORANGE: "dark_orange",
    ProgressBand.RED: "red",
}


def render_frame(frame: SessionFrame) -> Panel:
    """Clock panel: displayed time, progress bar and schedule position."""
    progress = frame.progress
    schedule = frame.schedule
    colour = BAND_COLOURS[progress.band]

    if progress.running:
        arrow = "▼" if progress.direction.counts_down else "▲"
        headline = Text(f"{arrow} {progress.format()}", style=f"bold {colour}")
    elif frame.schedule_completed:
        headline = Text("schedule complete", style="bold")
    else:
        headline = Text("waiting", style="dim")

    bar = ProgressBar(
        total=max(progress.duration_seconds, 1),
        completed=progress.elapsed_seconds if progress.running else 0,
        complete_style=colour,
        finished_style=colour,
    )

    if schedule.total_segments:
        position = min(schedule.current_index + 1, schedule.total_segments)
        status = f"segment {position}/{schedule.total_segments}"
    else:
        status = "no segments"
    if schedule.user_paused:
        status += " · paused"
    footer = Text(f"{format_hhmm(frame.now)}  {status}", style="dim")

    return Panel(Group(headline, bar, footer), title="session-timer", border_style=colour)
