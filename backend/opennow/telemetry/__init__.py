"""Request tracing and logging helpers."""

from .instrumentation import instrument_stage, timed_stage, with_timeout
from .trace import (
    RequestTrace,
    get_current_trace,
    reset_current_trace,
    set_current_trace,
)

__all__ = [
    "RequestTrace",
    "get_current_trace",
    "instrument_stage",
    "reset_current_trace",
    "set_current_trace",
    "timed_stage",
    "with_timeout",
]
