"""Logging setup for the gateway: JSON lines or plain text, with trace ids."""
from __future__ import annotations

import contextvars
import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import LOG_FORMAT, LOG_LEVEL

_TRACE_ID: "contextvars.ContextVar[Optional[str]]" = contextvars.ContextVar("trace_id", default=None)
_CONFIGURED = False

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class TraceIdFilter(logging.Filter):
    """Stamp the request trace id onto every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "trace_id", None):
            record.trace_id = _TRACE_ID.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: fixed envelope plus the record's extras."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        trace_id = getattr(record, "trace_id", None) or _TRACE_ID.get()
        if trace_id and trace_id != "-":
            payload["trace_id"] = trace_id
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_") or key == "trace_id":
                continue
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def build_logging_config(fmt: str = LOG_FORMAT, level: str = LOG_LEVEL) -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"trace": {"()": TraceIdFilter}},
        "formatters": {
            "json": {"()": JsonFormatter},
            "text": {
                "format": "%(asctime)s %(levelname)s %(name)s [%(trace_id)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": fmt if fmt in {"json", "text"} else "json",
                "filters": ["trace"],
            },
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(fmt: Optional[str] = None, level: Optional[str] = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return
    logging.config.dictConfig(build_logging_config(fmt or LOG_FORMAT, level or LOG_LEVEL))
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def bind_trace_id(trace_id: Optional[str]) -> None:
    _TRACE_ID.set(trace_id)


def current_trace_id() -> Optional[str]:
    return _TRACE_ID.get()


def clear_trace_id() -> None:
    _TRACE_ID.set(None)


def log_job_event(
    logger: logging.Logger,
    event: str,
    *,
    job_id: str,
    level: int = logging.INFO,
    **details: Any,
) -> None:
    logger.log(level, event, extra={"job_id": job_id, **{f"job_{key}": value for key, value in details.items()}})
