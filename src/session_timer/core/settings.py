"""Runtime settings for the session timer.

Manifesto:
    The scheduler's timing constants (tick period, settle delay, re-check
    delay) and the display thresholds are deployment choices, not code.
    ``SessionTimerSettings`` reads them from ``SESSION_TIMER_*`` environment
    variables or a ``.env`` file and validates them once at startup.

Features:
    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** ``SESSION_TIMER_`` prefix, ``.env`` support
    - **Extra ignore:** Unknown env vars don't cause startup failures
    - **Threshold repair:** red/orange progress thresholds are clamped the
      way the display expects (red >= 1 minute, strictly below orange)

Examples:
    >>> from session_timer.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.tick_interval_seconds
    1.0

Tags:
    settings, configuration, pydantic, environment, session-timer
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionTimerSettings(BaseSettings):
    """Settings shared by the scheduler, timer unit and CLI.

    Fields
    ──────
    tick_interval_seconds      : Scheduler tick period (1 Hz)
    settle_delay_seconds       : Delay between configuring a scheduled run and starting it
    completion_recheck_seconds : Delay before re-ticking after a segment completes
    default_duration_minutes   : Length of ad-hoc and empty-config segments
    orange_threshold_minutes   : Remaining minutes at which progress turns orange
    red_threshold_minutes      : Remaining minutes at which progress turns red
    frame_interval_seconds     : Terminal frame period for ``session-timer run``
    tick_backend               : "thread" (default) or "apscheduler"
    log_level                  : Structlog log level
    log_json                   : JSON logs; None auto-detects from the tty
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSION_TIMER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    settle_delay_seconds: float = Field(default=0.1, ge=0)
    completion_recheck_seconds: float = Field(default=1.0, ge=0)
    default_duration_minutes: int = Field(default=40, ge=1, le=480)
    tick_backend: Literal["thread", "apscheduler"] = "thread"

    # ── Display ──────────────────────────────────────────────────
    orange_threshold_minutes: int = 10
    red_threshold_minutes: int = 3
    frame_interval_seconds: float = Field(default=0.25, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @model_validator(mode="after")
    def _clamp_thresholds(self) -> SessionTimerSettings:
        orange = max(2, self.orange_threshold_minutes)
        red = max(1, self.red_threshold_minutes)
        if red >= orange:
            red = orange - 1
        self.orange_threshold_minutes = orange
        self.red_threshold_minutes = red
        return self


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: SessionTimerSettings | None = None


def get_settings(*, _force_reload: bool = False) -> SessionTimerSettings:
    """Load, validate and cache a :class:`SessionTimerSettings` instance."""
    global _settings_cache
    if _settings_cache is None or _force_reload:
        _settings_cache = SessionTimerSettings()
    return _settings_cache


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, env changes)."""
    global _settings_cache
    _settings_cache = None


__all__ = [
    "SessionTimerSettings",
    "get_settings",
    "clear_settings_cache",
]
