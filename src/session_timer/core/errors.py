"""
Structured error types for the session timer.

Every error raised by the package extends ``SessionTimerError`` and carries
a category, an optional structured context and an optional chained cause,
so a failure can be logged as one structured record instead of a bare
string.

Manifesto:
    - **Typed hierarchy:** configuration, validation and scheduling failures
      are distinct types
    - **Rich context:** errors carry the segment index, event name or field
      that caused them
    - **Error chaining:** wrapped exceptions (e.g. pydantic validation
      errors) are preserved as ``cause``
    - **Nothing fatal at runtime:** the scheduler and timer never raise from
      event handlers; errors here come from the loader boundary and from
      programmer misuse

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                    SessionTimerError                         │
        │               (category, context, cause)                     │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  ConfigError            SegmentValidationError               │
        │  (CONFIG)               (VALIDATION)                         │
        │       │                                                      │
        │  InvalidConfigError     SchedulingError                      │
        │                         (SCHEDULING)                         │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = InvalidConfigError("segments.0.time", "25:00")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.with_context(segment_index=0).context.segment_index
    0

Tags:
    error-handling, exception-hierarchy, error-context, session-timer

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    CONFIG = "CONFIG"             # Malformed or missing configuration
    VALIDATION = "VALIDATION"     # Invalid domain values (segments)
    SCHEDULING = "SCHEDULING"     # Scheduler misuse
    TIMER = "TIMER"               # Timer execution unit misuse
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        segment_index: Index of the segment involved, if any
        event: Name of the bus event being handled, if any
        field: Configuration field path (``segments.1.time``)
        value: Offending value
        metadata: Additional key-value pairs
    """

    segment_index: int | None = None
    event: str | None = None
    field: str | None = None
    value: Any = None

    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["segment_index", "event", "field"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.metadata:
            result.update(self.metadata)
        return result


class SessionTimerError(Exception):
    """
    Base exception for all session timer errors.

    Subclasses set ``default_category``; callers may override it per
    instance. Use :meth:`with_context` to attach metadata fluently.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SessionTimerError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SchedulingError("Bad index").with_context(segment_index=-1)
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SessionTimerError):
    """Configuration error. The payload must be fixed by the caller."""

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """A configuration payload failed validation at the loader boundary."""

    def __init__(
        self,
        key: str,
        value: Any,
        message: str | None = None,
        *,
        cause: Exception | None = None,
    ):
        self.key = key
        self.value = value
        super().__init__(
            message or f"Invalid configuration for {key}: {value!r}",
            context=ErrorContext(field=key, value=value),
            cause=cause,
        )


# =============================================================================
# DOMAIN ERRORS
# =============================================================================


class SegmentValidationError(SessionTimerError):
    """A segment was constructed with invalid values."""

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        if field is not None:
            self.context.field = field
            self.context.value = value


class SchedulingError(SessionTimerError):
    """The scheduler was asked to do something impossible."""

    default_category = ErrorCategory.SCHEDULING


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, SessionTimerError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SessionTimerError",
    "ConfigError",
    "InvalidConfigError",
    "SegmentValidationError",
    "SchedulingError",
    "categorize_error",
]
