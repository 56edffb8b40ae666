"""
Core primitives shared by the scheduler, the timer unit and the CLI.

Modules
-------
enums       Direction, ActivationMode, ProgressBand
errors      SessionTimerError hierarchy
logging     structlog configuration
settings    SessionTimerSettings (pydantic-settings)
clock       Clock protocol, SystemClock, SteppedClock
deferred    cancellable deferred actions
events      event names, payloads, message bus
scheduling  tick backends
"""
