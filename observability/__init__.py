"""Observability helpers."""

from .logger import (  # noqa: F401
    bind_trace_id,
    clear_trace_id,
    configure_logging,
    current_trace_id,
    get_logger,
    log_job_event,
)
from .metrics import get_registry  # noqa: F401

__all__ = [
    "bind_trace_id",
    "clear_trace_id",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "get_registry",
    "log_job_event",
]
