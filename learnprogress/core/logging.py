"""Logging configuration for the learning-progress service.

Every record passes through one handler on the root logger.  That
handler carries a context filter which stamps the current request id
and learner id (both ContextVars, set by RequestContextMiddleware) onto
records from any module, so a cascade warning logged deep inside
services/cascade.py still says which request and learner it belongs to.

Output shapes:

  _ContainerFormatter: one human-readable line per record, for local
    runs and `docker logs`.  Context ids are appended as key=value pairs.

  _JsonFormatter: one JSON object per line, for log shippers.  Context
    fields become top-level keys, so a query like
    learner_id == "..." AND level == "WARNING"  finds every cascade
    anomaly for a single learner.

Set LOG_JSON=true to switch to JSON output.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
learner_id_var: ContextVar[str | None] = ContextVar("learner_id", default=None)

# Attributes that middleware, the context filter or services may attach
CONTEXT_FIELDS = (
    "request_id",
    "learner_id",
    "activity_id",
    "module_id",
    "path_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
)

# Shown on container lines; the access-log fields are already in the message
_INLINE_FIELDS = ("request_id", "learner_id", "activity_id", "module_id", "path_id")

_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
)


class _ContextFilter(logging.Filter):
    """Fills request_id/learner_id from the ContextVars unless passed via extra=."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        if getattr(record, "learner_id", None) is None:
            record.learner_id = learner_id_var.get()  # type: ignore[attr-defined]
        return True


def _context_of(record: logging.LogRecord, fields: tuple[str, ...]) -> dict[str, object]:
    context = {}
    for key in fields:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter tuned for container stdout.

    - Always: ISO-8601 timestamp, level, logger name, message
    - Context ids present on the record: appended as key=value
    - WARNING+: appends [filename:lineno]
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Milliseconds go before the +0000 offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        self._style._fmt = self._BASE_FMT
        if record.levelno >= logging.WARNING:
            self._style._fmt += self._LOC_SUFFIX
        line = super().format(record)

        context = _context_of(record, _INLINE_FIELDS)
        if not context:
            return line
        head, sep, tail = line.partition("\n")  # keep tracebacks below the context
        pairs = " ".join(f"{k}={v}" for k, v in context.items())
        return f"{head}  {pairs}{sep}{tail}"


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter for machine-parseable log output."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context_of(record, CONTEXT_FIELDS),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Configure the root logger for container environments.

    Args:
        level_name: Log level string (debug/info/warning/error)
        json_format: If True, emit JSON lines. If False, human-readable.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(_ContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
