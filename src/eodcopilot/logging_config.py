"""Central logging configuration for EOD Copilot."""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
import uuid
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable


_CONFIG_LOCK = threading.Lock()
_CONFIGURED = False
_CORRELATION_ID = os.getenv("EOD_CORR_ID") or uuid.uuid4().hex

REDACTED = "***REDACTED***"
_SENSITIVE_MARKERS = ("token", "secret", "password", "api_key", "authorization")

# LogRecord attributes that are never copied into JSON payloads.
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "msg",
        "message",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)


def get_correlation_id() -> str:
    """Return the run-scoped correlation identifier."""

    return _CORRELATION_ID


def _is_sensitive(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in _SENSITIVE_MARKERS)


def _scrub(value: Any, *, key: str | None = None) -> Any:
    if key is not None and _is_sensitive(key):
        return REDACTED
    if isinstance(value, str):
        return REDACTED if _is_sensitive(value) else value
    if isinstance(value, dict):
        return {k: _scrub(v, key=str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return type(value)(_scrub(item) for item in value)
    return value


class _CorrelationIdFilter(logging.Filter):
    """Stamp every record with the correlation identifier."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if not getattr(record, "correlation_id", None):
            record.correlation_id = _CORRELATION_ID
        return True


class _RedactionFilter(logging.Filter):
    """Mask tokens and credentials before a record reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        for key in list(record.__dict__):
            if key in _RESERVED_ATTRS or key == "correlation_id":
                continue
            record.__dict__[key] = _scrub(record.__dict__[key], key=key)

        if isinstance(record.args, dict):
            record.args = _scrub(record.args)
        elif isinstance(record.args, Iterable) and not isinstance(record.args, str):
            record.args = tuple(_scrub(value) for value in record.args)

        if isinstance(record.msg, str) and _is_sensitive(record.msg):
            record.msg = REDACTED
        return True


class _JsonFormatter(logging.Formatter):
    """Emit one JSON object per record, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = value
        payload.setdefault("correlation_id", _CORRELATION_ID)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class _StructuredFormatter(logging.Formatter):
    """Single-line text formatter with UTC timestamps."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)sZ %(levelname)s %(name)s [corr=%(correlation_id)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: D401, N802
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return stamp.strftime(datefmt or self.datefmt or "%Y-%m-%dT%H:%M:%S")


def _resolve_level(name: str | None) -> int:
    if not name:
        return logging.INFO
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_override: str | None = None) -> None:
    """Install the stdout handler once and apply the requested level."""

    global _CONFIGURED

    with _CONFIG_LOCK:
        root = logging.getLogger()
        first_configuration = not _CONFIGURED
        if first_configuration:
            handler = logging.StreamHandler(stream=sys.stdout)
            handler.addFilter(_CorrelationIdFilter())
            handler.addFilter(_RedactionFilter())
            use_json = os.getenv("EOD_LOG_JSON", "false").lower() == "true"
            handler.setFormatter(_JsonFormatter() if use_json else _StructuredFormatter())
            root.handlers = [handler]
            _CONFIGURED = True

        if level_override:
            root.setLevel(_resolve_level(level_override))
        elif first_configuration:
            root.setLevel(_resolve_level(os.getenv("EOD_LOG_LEVEL", "INFO")))


def get_logger(name: str) -> logging.Logger:
    """Return a logger, configuring the root handler on first use."""

    configure_logging()
    return logging.getLogger(name)


def parse_retry_after(value: str) -> float | None:
    """Parse a Retry-After header value into seconds."""

    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at is None:
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max((retry_at - datetime.now(timezone.utc)).total_seconds(), 0)


__all__ = ["get_logger", "configure_logging", "get_correlation_id", "parse_retry_after", "REDACTED"]
