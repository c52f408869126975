# backend/bookati/core/request_context.py
"""
Per-request correlation id.

The request id middleware binds the id for the lifetime of a request; log
records and problem responses read it back from here.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

NO_REQUEST_ID = "no-request"

_current_request_id: ContextVar[Optional[str]] = ContextVar("bookati_request_id", default=None)


def set_request_id(request_id: Optional[str]) -> Token[Optional[str]]:
    return _current_request_id.set(request_id or None)


def reset_request_id(token: Token[Optional[str]]) -> None:
    _current_request_id.reset(token)


def get_request_id_value(default: str = NO_REQUEST_ID) -> str:
    return _current_request_id.get() or default


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` so formatters can include it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id_value()
        return True


def attach_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Add the filter to every handler of ``logger`` (root by default) once."""
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(existing, RequestIdFilter) for existing in handler.filters):
            handler.addFilter(RequestIdFilter())
