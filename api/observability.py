from __future__ import annotations

import contextvars
import logging
import time
from typing import Optional
from uuid import uuid4

from core.logging_config import json_handler, setup_logging


_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
_logging_configured = False


def get_request_id() -> Optional[str]:
    return _request_id_var.get()


def set_request_id(value: Optional[str]):
    return _request_id_var.set(value)


def reset_request_id(token) -> None:
    _request_id_var.reset(token)


def new_request_id() -> str:
    return uuid4().hex


class RequestIdFilter(logging.Filter):
    """Stamps the current request id onto every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


def configure_logging(level: str = "INFO") -> None:
    global _logging_configured
    if _logging_configured:
        return

    handler = json_handler()
    handler.addFilter(RequestIdFilter())
    setup_logging(level, handler)
    _logging_configured = True


def request_log_fields(*, method: str, path: str, status_code: int, duration_ms: float, client_ip: Optional[str]) -> dict[str, object]:
    return {
        "ctx_method": method,
        "ctx_path": path,
        "ctx_status_code": int(status_code),
        "ctx_duration_ms": round(float(duration_ms), 2),
        "ctx_client_ip": client_ip or "",
    }


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0
