"""
Logging setup for the Lagrange erasure kit.

Library modules only create ``logging.getLogger(__name__)`` loggers; nothing is
emitted until an application (the CLI) calls :func:`setup_logging`.
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

PACKAGE_LOGGER = "lagrange_erasure"

# LogRecord attributes that are not user-supplied extras
_RECORD_KEYS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


class JSONFormatter(logging.Formatter):
    """Format each record as one JSON object, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_KEYS:
                log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_obj, default=str)


def setup_logging(level: str = "WARNING", json_format: bool = False) -> logging.Logger:
    """
    Configure the package logger to write to stderr.

    Args:
        level: Level name (DEBUG, INFO, ...)
        json_format: Use JSONFormatter instead of a plain text format

    Returns:
        The configured package logger
    """
    log = logging.getLogger(PACKAGE_LOGGER)
    log.setLevel(level.upper())

    # Replace rather than stack handlers when called more than once
    for handler in list(log.handlers):
        log.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    log.addHandler(handler)
    log.propagate = False
    return log
