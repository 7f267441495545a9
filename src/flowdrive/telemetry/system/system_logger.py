"""System logger for operational events.

All components log through one shared logger. Messages are dicts with an
"event" key and structured fields; the formatter renders each record as a
single JSON line with ISO 8601 time and level:

    {"time": "...", "level": "WARNING", "event": "credential_missing_tokens", "node_id": "abc"}

A redaction filter replaces token and secret values before any handler sees
them, so a careless log call cannot leak credential material.
"""

from __future__ import annotations

__all__ = [
    "REDACTED_VALUE",
    "JsonLineFormatter",
    "RedactionFilter",
    "configure_system_logger",
    "get_system_logger",
]

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SYSTEM_LOGGER_NAME = "flowdrive.system"
SYSTEM_LOG_FILENAME = "system.jsonl"

REDACTED_VALUE = "[REDACTED]"

# Keys whose values are credential material
_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "refresh_token",
        "id_token",
        "client_secret",
        "credential_secret",
        "csrf_token",
        "code",
        "authorization",
    }
)


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED_VALUE if str(k).lower() in _SECRET_KEYS and v else _redact(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


class RedactionFilter(logging.Filter):
    """Replace secret-valued keys in dict messages with [REDACTED]."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, dict):
            record.msg = _redact(record.msg)
        return True


class JsonLineFormatter(logging.Formatter):
    """Render records as JSON lines; dict messages are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
        }
        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()
        if record.exc_info and record.exc_info[1] is not None:
            entry.setdefault("error_type", type(record.exc_info[1]).__name__)
        return json.dumps(entry, default=str)


def get_system_logger() -> logging.Logger:
    """Get the shared system logger.

    Handlers are attached by configure_system_logger(); until then records
    propagate to the root logger, which keeps pytest's caplog working.
    """
    logger = logging.getLogger(SYSTEM_LOGGER_NAME)
    if not any(isinstance(f, RedactionFilter) for f in logger.filters):
        logger.addFilter(RedactionFilter())
    return logger


def configure_system_logger(level: str = "INFO", log_dir: str | Path | None = None) -> logging.Logger:
    """Attach console (stderr) and optional file handlers to the system logger.

    Safe to call more than once; existing handlers are replaced.

    Args:
        level: Logging level name.
        log_dir: Directory for system.jsonl, or None for console only.

    Returns:
        The configured system logger.
    """
    logger = get_system_logger()
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = JsonLineFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / SYSTEM_LOG_FILENAME, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
