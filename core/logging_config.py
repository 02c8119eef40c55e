"""JSON log lines for the scheduling service.

Services log an event name as the message and put structured values in
``extra`` under ``ctx_`` keys, e.g. ``logger.info("series_split",
extra={"ctx_head_id": 4})``. The formatter collects those keys under
``context`` so log queries can filter on them without parsing messages.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

CONTEXT_PREFIX = "ctx_"
QUIET_LOGGERS = ("sqlalchemy.engine", "alembic")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id
        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["exception"] = {"type": type(error).__name__, "message": str(error)}
        context = {k: v for k, v in vars(record).items() if k.startswith(CONTEXT_PREFIX)}
        if context:
            entry["context"] = context
        return json.dumps(entry, default=str)


def json_handler(stream: Optional[IO[str]] = None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(level: str = "INFO", handler: Optional[logging.Handler] = None) -> logging.Handler:
    """Route the root logger through a single JSON handler and return it.

    A JSON handler installed by an earlier call is replaced, so calling this
    again only changes the level or the target stream.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing.formatter, JSONFormatter):
            root.removeHandler(existing)
    handler = handler or json_handler()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # uvicorn installs its own handlers; let its records reach the JSON handler instead.
    for name in UVICORN_LOGGERS:
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
    return handler
