"""
CLI layer for session-timer.

Provides a Typer application that drives a :class:`~session_timer.session.Session`
from the terminal. All scheduling logic lives in the core; this package
handles only argument parsing, payload loading and rich output.

Entry point::

    session-timer --help
"""

from session_timer.cli.app import app

__all__ = ["app"]
