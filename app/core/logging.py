"""Root logging setup for rental-service.

LOG_JSON picks the output shape:

  _ContainerFormatter  one readable line per record, for local runs
  _JsonFormatter       one JSON object per line, for the log pipeline;
                       request context becomes top-level keys

Request context (request_id, actor) is carried in ContextVars and copied
onto each record by _RequestContextFilter, which setup_logging attaches
to the stdout handler. Prometheus metrics are in app/core/metrics.py.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
actor_var: ContextVar[str] = ContextVar("actor", default="-")

_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)


class _RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        if not hasattr(record, "actor"):
            record.actor = actor_var.get()  # type: ignore[attr-defined]
        return True


def _iso_millis(record: logging.LogRecord) -> str:
    stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds")


class _ContainerFormatter(logging.Formatter):
    """`<time> <LEVEL> <logger> [<request_id> <actor>]  <message>`

    WARNING and above get `[file:line]` appended.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s [%(request_id)s %(actor)s]  %(message)s")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return _iso_millis(record)

    def formatMessage(self, record: logging.LogRecord) -> str:
        for field in ("request_id", "actor"):
            if not hasattr(record, field):
                setattr(record, field, "-")
        line = super().formatMessage(record)
        if record.levelno >= logging.WARNING:
            line += f"  [{record.filename}:{record.lineno}]"
        return line


class _JsonFormatter(logging.Formatter):
    _CONTEXT_FIELDS = ("request_id", "actor", "method", "path", "status_code", "duration_ms")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": _iso_millis(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self._CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, "-"):
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root handlers with a single stdout handler.

    Unknown level names fall back to INFO. Chatty third-party loggers
    never go below WARNING.
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_RequestContextFilter())
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
