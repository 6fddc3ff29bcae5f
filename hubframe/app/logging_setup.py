"""Rotating plain-text and JSONL logging for the host process."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from flask import g, has_request_context, request


_LOG_CONFIGURED = False
_REQUEST_LOGGER_NAME = "hubframe.api"
_ROOT_DIR = Path(__file__).resolve().parents[2]
_DEFAULT_LOG_DIR = _ROOT_DIR / "logs"
_DEFAULT_COMPONENT = os.getenv("LOG_COMPONENT", "hubframe")
_MAX_MESSAGE_LENGTH = int(os.getenv("LOG_MAX_MESSAGE_LENGTH", "2000"))
_MAX_STACK_LENGTH = int(os.getenv("LOG_MAX_STACK_LENGTH", "8000"))
_BACKUP_DAYS = 14


def new_request_id() -> str:
    return "req_" + uuid.uuid4().hex[:10]


def _log_dir() -> Path:
    resolved = Path(os.getenv("LOG_DIR", _DEFAULT_LOG_DIR))
    resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def _resolve_level() -> int:
    explicit = os.getenv("LOG_LEVEL")
    if explicit:
        return getattr(logging, explicit.upper(), logging.INFO)
    debug = os.getenv("FLASK_DEBUG")
    if debug and debug not in {"0", "false", "False"}:
        return logging.DEBUG
    return logging.INFO


def _truncate(value: str | None, limit: int) -> str | None:
    if value is None or limit <= 0 or len(value) <= limit:
        return value
    return f"{value[:limit]}...[truncated {len(value) - limit} chars]"


def _event_name(record: logging.LogRecord) -> str:
    """Log messages double as event names (``"frame.goto"``) unless ``event`` is set."""

    explicit = getattr(record, "event", None)
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    message = record.msg if isinstance(record.msg, str) else ""
    if message and " " not in message and "." in message:
        return message
    return "log"


def _safe_meta(record: logging.LogRecord) -> Optional[dict[str, Any]]:
    meta = getattr(record, "meta", None)
    if meta is None:
        return None
    if not isinstance(meta, dict):
        return {"value": repr(meta)}
    try:
        json.dumps(meta)
    except TypeError:
        return {"repr": repr(meta)}
    return meta


class CorrelationIdFilter(logging.Filter):
    """Ensures every log record carries a correlation_id attribute."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401 - standard signature
        if getattr(record, "correlation_id", None):
            return True
        correlation_id: Optional[str] = None
        if has_request_context():
            correlation_id = request.headers.get("X-Correlation-Id") or getattr(g, "trace_id", None)
        record.correlation_id = correlation_id
        return True


class JsonlFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override signature
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "component": getattr(record, "component", _DEFAULT_COMPONENT),
            "correlation_id": getattr(record, "correlation_id", None),
            "event": _event_name(record),
            "message": _truncate(record.getMessage(), _MAX_MESSAGE_LENGTH),
        }
        if record.exc_info:
            payload["stack"] = _truncate(self.formatException(record.exc_info), _MAX_STACK_LENGTH)
        meta = _safe_meta(record)
        if meta:
            payload["meta"] = meta
        return json.dumps(payload, ensure_ascii=False)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - override signature
        parts = [
            self.formatTime(record, datefmt="%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname}]",
            f"({getattr(record, 'component', _DEFAULT_COMPONENT)})",
            record.name,
        ]
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            parts.append(f"cid={correlation_id}")
        line = f"{' '.join(parts)} {_truncate(record.getMessage(), _MAX_MESSAGE_LENGTH)}"
        meta = _safe_meta(record)
        if meta:
            line = f"{line} {json.dumps(meta, ensure_ascii=False)}"
        if record.exc_info:
            line = f"{line}\n{_truncate(self.formatException(record.exc_info), _MAX_STACK_LENGTH)}"
        return line


def _build_namer(extension: str) -> Callable[[str], str]:
    def _rename(default_name: str) -> str:
        path = Path(default_name)
        parts = path.name.split(".")
        if len(parts) >= 3:
            return str(path.with_name(f"{parts[0]}-{parts[-1]}.{extension}"))
        return str(path)

    return _rename


def _rotating_handler(filename: str, extension: str, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=_log_dir() / filename,
        when="midnight",
        interval=1,
        backupCount=_BACKUP_DAYS,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    handler.namer = _build_namer(extension)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())
    return handler


def setup_logging() -> None:
    """Initialize the logging stack exactly once."""

    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    level = _resolve_level()
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [
        _rotating_handler("hubframe.log", "log", PlainFormatter(), level),
        _rotating_handler("hubframe.jsonl", "jsonl", JsonlFormatter(), level),
    ]

    logging.captureWarnings(True)
    logging.getLogger(_REQUEST_LOGGER_NAME).setLevel(level)
    # urllib3 logs every connection at DEBUG.
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))

    _LOG_CONFIGURED = True


def get_request_logger() -> logging.Logger:
    """Return the logger used for per-request summaries."""

    setup_logging()
    return logging.getLogger(_REQUEST_LOGGER_NAME)


__all__ = [
    "CorrelationIdFilter",
    "JsonlFormatter",
    "PlainFormatter",
    "get_request_logger",
    "new_request_id",
    "setup_logging",
]
