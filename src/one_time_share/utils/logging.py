"""
JSON logs for one_time_share.

Every record is one JSON object per line: level, logger, event name, the
request id of the HTTP call that produced it (if any) and whatever was passed
in ``extra``. Message payloads and credentials never reach the output: their
keys are replaced with a mask, tokens are expected to go through
``short_token`` before being logged.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import time
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, Final, Optional, TextIO

_MASK: Final[str] = "***MASKED***"

_request_id_var: ContextVar[Optional[str]] = ContextVar("one_time_share_request_id", default=None)


def set_request_id(value: Optional[str]) -> None:
    _request_id_var.set(value)


def get_request_id() -> Optional[str]:
    return _request_id_var.get()


def short_token(token: str) -> str:
    """First 8 chars of a message/identity token; a full token is a credential."""
    return f"{token[:8]}..." if len(token) > 8 else "***"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, secrets masked."""

    MASKED_KEYS: Final[frozenset[str]] = frozenset({
        "authorization",
        "data",
        "key_path",
        "message_data",
        "password",
        "payload",
        "private_key",
        "secret",
        "user_token",
    })

    # attributes every LogRecord has; everything else came from ``extra``
    _RECORD_ATTRS: Final[frozenset[str]] = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", None, None))
    ) | {"message", "asctime"}

    def __init__(self, *, with_location: bool = False) -> None:
        super().__init__()
        self.with_location = with_location

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        if self.with_location:
            out["at"] = f"{record.module}.{record.funcName}:{record.lineno}"

        request_id = get_request_id()
        if request_id:
            out["request_id"] = request_id

        for key, value in vars(record).items():
            if key in self._RECORD_ATTRS or key.startswith("_"):
                continue
            out[key] = _MASK if key.lower() in self.MASKED_KEYS else value

        if record.exc_info and record.exc_info[0] is not None:
            out["exc_type"] = record.exc_info[0].__name__
            out["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(out, ensure_ascii=False, default=str)


_LEVELS: Final[dict[str, int]] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
}


def level_from_name(name: str, default: int = logging.INFO) -> int:
    return _LEVELS.get(name.strip().upper(), default)


def _json_handler(level: int, stream: Optional[TextIO] = None) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.setLevel(level)
    return handler


def configure_root(level: Optional[int] = None) -> None:
    """
    Route the root logger (uvicorn, starlette, anything that propagates) through
    the JSON formatter. Safe to call more than once.
    """
    if level is None:
        level = level_from_name(os.getenv("LOG_LEVEL", "INFO"))
    root = logging.getLogger()
    root.setLevel(level)

    json_handlers = [h for h in root.handlers if isinstance(h.formatter, JsonFormatter)]
    if json_handlers:
        for h in json_handlers:
            h.setLevel(level)
    else:
        root.addHandler(_json_handler(level))

    # access lines duplicate the latency metric
    for noisy in ("uvicorn.access", "httpx", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str, *, level: Optional[int] = None) -> logging.Logger:
    """Module logger with its own JSON handler; does not propagate to root."""
    if level is None:
        level = level_from_name(os.getenv("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not logger.handlers:
        logger.addHandler(_json_handler(level))
    logger.propagate = False
    return logger


class LogTimer:
    """
    Logs ``<operation>_completed`` with ``duration_ms`` on success and
    ``<operation>_failed`` at ERROR on an exception (which is not swallowed).
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG, **fields: Any) -> None:
        self.logger = logger
        self.operation = operation
        self.level = level
        self.fields = fields
        self._t0 = 0.0

    def __enter__(self) -> "LogTimer":
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, _tb) -> None:
        extra = dict(self.fields, duration_ms=round((time.perf_counter() - self._t0) * 1000.0, 2))
        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}_completed", extra=extra)
            return
        extra.update(error=str(exc), error_type=exc_type.__name__)
        self.logger.error(f"{self.operation}_failed", extra=extra)


__all__ = [
    "JsonFormatter",
    "LogTimer",
    "configure_root",
    "get_logger",
    "get_request_id",
    "level_from_name",
    "set_request_id",
    "short_token",
]
