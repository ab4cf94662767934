from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional


# Per-request values stamped on every record
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | cid=%(correlation_id)s | user=%(user_id)s | %(message)s"

# Libraries that log every request/statement on their own at INFO
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "passlib")


class LoggingContextFilter(logging.Filter):
    """Copy the request's correlation id and authenticated profile id onto the record ('-' when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.correlation_id = correlation_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        return True


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


# PUBLIC_INTERFACE
def bind_user(user_id: Optional[str]) -> None:
    """Attach the authenticated profile id to log records for the rest of the request."""
    user_id_var.set(user_id)


# PUBLIC_INTERFACE
def configure_logging(level: int | str = logging.INFO) -> None:
    """Install a single stdout handler on the root logger with the context filter; LOG_LEVEL may be a name."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)

    resolved = _resolve_level(level)
    root.setLevel(resolved)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
