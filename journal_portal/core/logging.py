"""JSON line logging for the portal, tagged with the request correlation id."""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

CORRELATION_ID_CTX: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Loggers that would otherwise duplicate the request_completed line.
_QUIET_LOGGERS = ("uvicorn.access",)


class JsonLogFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Event names go in ``message``; whatever the caller passed through
    ``extra`` (``user_id``, ``journal_id``, ``reason`` and so on) is copied to
    the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        correlation_id = CORRELATION_ID_CTX.get()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_") or value in (None, ""):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", *, stream: TextIO | None = None) -> None:
    """Send every logger through a single JSON handler on ``stream`` (stdout)."""
    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Tag log records emitted inside the block with ``correlation_id``."""
    token = CORRELATION_ID_CTX.set(correlation_id)
    try:
        yield correlation_id
    finally:
        CORRELATION_ID_CTX.reset(token)
