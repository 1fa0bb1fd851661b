"""
Logging helpers: one JSON object per line on stdout.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, dict):
            entry.update(extra)
        return json.dumps(entry, default=str)


_created: list[logging.Logger] = []


def get_logger(name: str, level: int | str | None = None) -> logging.Logger:
    """Return a logger that writes JSON lines. Handlers are attached only once per name."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
        _created.append(logger)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    return logger


def set_log_level(level: int | str) -> None:
    for logger in _created:
        logger.setLevel(level)


def log_extra(**fields) -> dict:
    return {"extra_data": fields}
