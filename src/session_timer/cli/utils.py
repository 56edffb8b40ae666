"""
CLI utility helpers: payload loading and output formatting.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from session_timer.core.errors import SessionTimerError
from session_timer.segments.models import Segment

console = Console()
err_console = Console(stderr=True)


# ── Payload loading ──────────────────────────────────────────────────────


def load_payload(source: str) -> dict[str, Any]:
    """Read a configuration payload from a JSON file path or an inline JSON string."""
    text = source
    if not source.lstrip().startswith("{"):
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            err_console.print(f"[bold red]Error[/bold red]: cannot read {source}: {e}")
            raise typer.Exit(code=1) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error[/bold red] (CONFIG): not valid JSON: {e.msg}")
        raise typer.Exit(code=1) from e

    if not isinstance(data, dict):
        err_console.print("[bold red]Error[/bold red] (CONFIG): configuration must be a JSON object")
        raise typer.Exit(code=1)
    return data


def exit_with_error(error: SessionTimerError) -> NoReturn:
    """Print a structured error and exit 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


# ── Plan rendering ───────────────────────────────────────────────────────


def _hhmm(minute: int) -> str:
    sign = "-" if minute < 0 else ""
    minute = abs(minute)
    return f"{sign}{minute // 60:02d}:{minute % 60:02d}"


_STATUS_STYLE = {"pending": "cyan", "live": "bold green", "expired": "dim"}


def plan_rows(segments: list[Segment] | tuple[Segment, ...], now: datetime) -> list[dict[str, Any]]:
    """One row per segment: activation window, derived run start, status against ``now``."""
    rows = []
    for index, segment in enumerate(segments):
        rows.append(
            {
                "index": index,
                "mode": segment.direction.value,
                "activation": segment.activation_mode.value,
                "time": segment.to_dict()["time"],
                "start": _hhmm(segment.window_start_minute),
                "end": _hhmm(segment.window_end_minute),
                "run_start": _hhmm(segment.start_minute),
                "duration": segment.duration_minutes,
                "status": "manual" if segment.is_manual else segment.window_status(now),
            }
        )
    return rows


def print_plan(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "Plan") -> None:
    if as_json:
        console.print_json(json.dumps(rows))
        return

    if not rows:
        console.print("[dim]No segments.[/dim]")
        return

    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Mode")
    table.add_column("Activation")
    table.add_column("Time")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Run")
    table.add_column("Minutes", justify="right")
    table.add_column("Status")
    for row in rows:
        style = _STATUS_STYLE.get(row["status"], "")
        table.add_row(
            str(row["index"]),
            row["mode"],
            row["activation"],
            row["time"],
            row["start"],
            row["end"],
            row["run_start"],
            str(row["duration"]),
            f"[{style}]{row['status']}[/{style}]" if style else row["status"],
        )
    console.print(table)
