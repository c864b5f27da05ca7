"""Centralized logging utilities for the access engine.

This module provides:
- Logging configuration from AccessConfig
- Safe preview utility for values that end up in log lines
- Structured (JSON or plain) formatter carrying access-check context
- Logger adapter that binds actor_id and path to every record
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Sequence

from .config import AccessConfig, LogLevel

# Record attributes set by the logging module itself
_RESERVED_ATTRS = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName", "actor_id", "path",
    }
)


def safe_preview(value: Any, limit: int = 240) -> str:
    """Create a single-line, length-bounded preview of a value for logging.

    Args:
        value: The value to preview (any type)
        limit: Maximum length of the preview (default: 240)

    Returns:
        A truncated string representation
    """
    if value is None:
        return ""

    if isinstance(value, str):
        s = value
    elif isinstance(value, (dict, list, tuple)):
        try:
            s = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            s = str(value)
    else:
        s = str(value)

    # Normalize whitespace
    s = " ".join(s.split())

    if len(s) > limit:
        return s[: limit - 1] + "…"
    return s


class AccessLogFormatter(logging.Formatter):
    """Formatter that includes actor_id / path and optionally emits JSON."""

    def __init__(self, json_format: bool = True, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        actor_id = getattr(record, "actor_id", None)
        path = getattr(record, "path", None)

        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if actor_id:
            log_data["actor_id"] = actor_id
        if path:
            log_data["path"] = ".".join(path) if isinstance(path, (list, tuple)) else str(path)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = safe_preview(value)

        if self.json_format:
            return json.dumps(log_data, default=str, ensure_ascii=False)

        parts = [
            f"[{log_data['timestamp']}]",
            log_data["level"],
            log_data["logger"],
        ]
        if actor_id:
            parts.append(f"actor={actor_id}")
        if path:
            parts.append(f"path={log_data['path']}")
        parts.append(f": {log_data['message']}")
        return " ".join(parts)


class AccessLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds actor_id and path to log records.

    Usage:
        logger = get_access_logger(__name__, actor_id="u-17", path=("hrm",))
        logger.info("Access denied")
    """

    def __init__(
        self,
        logger: logging.Logger,
        actor_id: Optional[str] = None,
        path: Optional[Sequence[str]] = None,
    ):
        super().__init__(logger, {})
        self.actor_id = actor_id
        self.path = tuple(path) if path else None

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        actor_id = kwargs.pop("actor_id", self.actor_id)
        path = kwargs.pop("path", self.path)

        extra = kwargs.get("extra", {})
        if actor_id:
            extra["actor_id"] = actor_id
        if path:
            extra["path"] = path
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(config: Optional[AccessConfig] = None, json_format: Optional[bool] = None) -> None:
    """Configure the root logger for an embedding service.

    Args:
        config: AccessConfig instance (if None, loads from environment)
        json_format: Override ``config.log_json``
    """
    if config is None:
        from .config import load_access_config_from_env

        config = load_access_config_from_env()

    level_map = {
        LogLevel.DEBUG: logging.DEBUG,
        LogLevel.INFO: logging.INFO,
        LogLevel.WARNING: logging.WARNING,
        LogLevel.ERROR: logging.ERROR,
        LogLevel.CRITICAL: logging.CRITICAL,
    }
    log_level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        AccessLogFormatter(json_format=config.log_json if json_format is None else json_format)
    )
    root_logger.addHandler(console_handler)


def get_access_logger(
    name: str,
    actor_id: Optional[str] = None,
    path: Optional[Sequence[str]] = None,
) -> AccessLoggerAdapter:
    """Get a logger adapter bound to an access-check context.

    Args:
        name: Logger name (typically __name__)
        actor_id: Optional actor to include in all records
        path: Optional node path to include in all records

    Returns:
        AccessLoggerAdapter instance
    """
    return AccessLoggerAdapter(logging.getLogger(name), actor_id=actor_id, path=path)


__all__ = [
    "AccessLogFormatter",
    "AccessLoggerAdapter",
    "get_access_logger",
    "safe_preview",
    "setup_logging",
]
