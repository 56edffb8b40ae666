"""
Root Typer application for the session-timer CLI.

Commands::

    session-timer validate CONFIG          check a configuration payload
    session-timer plan CONFIG [--json]     show segment windows and run starts
    session-timer run CONFIG [--start]     run a live session in the terminal

``CONFIG`` is a path to a JSON file or an inline JSON object.
"""

from __future__ import annotations

import typer
from rich.live import Live

from session_timer.cli.render import render_frame
from session_timer.cli.utils import (
    console,
    err_console,
    exit_with_error,
    load_payload,
    plan_rows,
    print_plan,
)
from session_timer.core.clock import SystemClock
from session_timer.core.errors import InvalidConfigError
from session_timer.core.logging import configure_logging
from session_timer.core.settings import get_settings

app = typer.Typer(
    name="session-timer",
    help="session-timer: wall-clock scheduled countdown / count-up segments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        from session_timer import __version__

        try:
            v = pkg_version("session-timer")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"session-timer {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """session-timer CLI: validate, plan and run segment schedules."""
    settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("validate")
def validate(
    config: str = typer.Argument(..., help="JSON file path or inline JSON"),
) -> None:
    """Validate a configuration payload."""
    from session_timer.segments.loader import build_segments, parse_config

    payload = load_payload(config)
    try:
        parsed = parse_config(payload)
    except InvalidConfigError as e:
        exit_with_error(e)

    segments = build_segments(
        parsed, SystemClock().now(), default_minutes=get_settings().default_duration_minutes
    )
    console.print(f"[green]OK[/green] {len(segments)} segment(s)")


@app.command("plan")
def plan(
    config: str = typer.Argument(..., help="JSON file path or inline JSON"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show each segment's activation window and its status against now."""
    from session_timer.segments.loader import build_segments, parse_config

    payload = load_payload(config)
    try:
        parsed = parse_config(payload)
    except InvalidConfigError as e:
        exit_with_error(e)

    now = SystemClock().now()
    segments = build_segments(parsed, now, default_minutes=get_settings().default_duration_minutes)
    print_plan(plan_rows(segments, now), as_json=json_out, title=f"Plan at {now:%H:%M}")


@app.command("run")
def run(
    config: str = typer.Argument(..., help="JSON file path or inline JSON"),
    start: bool = typer.Option(False, "--start", help="Start the current segment immediately."),
    keep_open: bool = typer.Option(False, "--keep-open", help="Keep running after the schedule ends."),
    max_frames: int | None = typer.Option(None, "--max-frames", min=1, help="Stop after N frames."),
) -> None:
    """Run a live session. Ctrl-C stops."""
    from session_timer.session import Session, SessionRunner

    payload = load_payload(config)
    session = Session.create(settings=get_settings())
    try:
        try:
            session.open(payload)
        except InvalidConfigError as e:
            exit_with_error(e)

        if start:
            session.start()

        runner = SessionRunner(session)
        with Live(render_frame(session.frame()), console=console, refresh_per_second=8) as live:
            runner.on_frame = lambda frame: live.update(render_frame(frame))
            try:
                runner.run(max_frames=max_frames, keep_open=keep_open)
            except KeyboardInterrupt:
                session.stop()
                err_console.print("[yellow]Stopped.[/yellow]")
    finally:
        session.close()
