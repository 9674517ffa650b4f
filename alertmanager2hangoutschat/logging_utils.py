"""
Logging setup for the relay.

Two output formats share one root handler:

- ``json``: NDJSON, one object per line, for log aggregation
- anything else: human readable text lines

Each record carries the request correlation id (or ``system`` outside a
request). Level names accepted:
trace, debug, info, warn/warning, error, fatal, panic.

Usage:
    from alertmanager2hangoutschat.logging_utils import setup_logging

    logger = setup_logging(log_format="json", log_level="info")
    logger.info("Relay started", extra={"port": 8080})
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

from flask import g, has_request_context

from alertmanager2hangoutschat import SERVICE_NAME, __version__
from alertmanager2hangoutschat.errors import ConfigError

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_LEVELS: Dict[str, int] = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

TEXT_FORMAT = "%(asctime)s - %(levelname)s - [%(correlation_id)s] - %(name)s - %(message)s"

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "correlation_id",
])


def parse_log_level(name: str) -> int:
    """
    Map a level name to a ``logging`` level.

    Raises:
        ConfigError: unknown level name
    """
    try:
        return LOG_LEVELS[name.strip().lower()]
    except KeyError:
        raise ConfigError(
            f"not a valid log level: {name!r} (valid: {', '.join(LOG_LEVELS)})"
        ) from None


class NDJSONFormatter(logging.Formatter):
    """
    Formats each record as a single-line JSON object.

    Fields included:
    - timestamp: ISO 8601 with timezone
    - level: level name (INFO, ERROR, ...)
    - message: formatted message
    - logger, module, function, line, thread
    - service, version
    - correlation_id: request correlation id or "system"
    - error: exception type, message and traceback when present
    - any field passed through ``extra=``
    """

    def __init__(self, service_name: str = SERVICE_NAME, version: str = __version__):
        super().__init__()
        self.service_name = service_name
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": threading.get_ident(),
            "service": self.service_name,
            "version": self.version,
            "correlation_id": getattr(record, "correlation_id", None) or "system",
        }

        if record.exc_info:
            log_entry["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key in log_entry:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry, default=str)


class CorrelationIdFilter(logging.Filter):
    """Adds the current request's correlation id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = None
        if has_request_context():
            correlation_id = g.get("correlation_id")
        record.correlation_id = correlation_id or "system"
        return True


def setup_logging(
    log_format: str = "json",
    log_level: str = "info",
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Configure the root logger.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        log_format: "json" for NDJSON, any other value for text
        log_level: level name accepted by parse_log_level()
        stream: output stream (default: stderr)

    Returns:
        The root logger

    Raises:
        ConfigError: unknown level name
    """
    level = parse_log_level(log_level)

    logger = logging.getLogger()
    logger.handlers.clear()
    logger.setLevel(level)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())

    if log_format == "json":
        handler.setFormatter(NDJSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.debug(f"Logging configured: format={log_format} level={logging.getLevelName(level)}")
    return logger
