"""Logging setup shared by every toonana module.

Records are rendered as one JSON object per line. Job and provider fields
are lifted to the top level so a job can be followed across the fallback
chain; anything else passed through ``extra`` lands under ``"extra"``.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Iterator, Optional

LOG_DIR_ENV = "TOONANA_LOG_DIR"
LOG_FILENAME = "toonana.log"
LOGGER_NAME = "toonana"
DEFAULT_LOG_LEVEL = logging.INFO

_MAX_LOG_BYTES = 5 * 1024 * 1024
_LOG_BACKUPS = 5

_logger: Optional[logging.Logger] = None
_context: contextvars.ContextVar[Dict[str, object]] = contextvars.ContextVar(
    "toonana_log_context", default={}
)

# Attributes every LogRecord carries; anything beyond these came from ``extra``.
_STANDARD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JSONLogFormatter(logging.Formatter):
    """Render log records as single-line JSON."""

    TOP_LEVEL_FIELDS: tuple[str, ...] = (
        "job_id",
        "stage",
        "event",
        "status",
        "provider",
        "next_provider",
        "entry_id",
        "duration_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra: Dict[str, object] = {}
        for key, value in vars(record).items():
            if key in _STANDARD_ATTRIBUTES or value is None:
                continue
            if key in self.TOP_LEVEL_FIELDS:
                payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class LogContextFilter(logging.Filter):
    """Copy the active :func:`log_context` values onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context.get().items():
            # Explicit ``extra`` values win over the ambient context.
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def _log_dir() -> Path:
    override = os.environ.get(LOG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(__file__).resolve().parent.parent / "log"


def setup_logging(log_level: int = DEFAULT_LOG_LEVEL) -> logging.Logger:
    """Attach the JSON file and stderr handlers to the package logger once."""
    global _logger

    if _logger is None:
        log_dir = _log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)

        logger = logging.getLogger(LOGGER_NAME)
        logger.propagate = False
        logger.addFilter(LogContextFilter())
        formatter = JSONLogFormatter()
        for handler in (
            RotatingFileHandler(
                log_dir / LOG_FILENAME, maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS
            ),
            logging.StreamHandler(),
        ):
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        _logger = logger

    configure_logging_level(log_level=log_level)
    return _logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def configure_logging_level(debug_enabled: bool = False, log_level: Optional[int] = None) -> int:
    """Apply ``log_level``, or DEBUG/INFO from ``debug_enabled``, to the logger and its handlers."""

    if log_level is None:
        log_level = logging.DEBUG if debug_enabled else DEFAULT_LOG_LEVEL
    logger = get_logger()
    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)
    return log_level


def get_log_context() -> Dict[str, object]:
    return dict(_context.get())


@contextlib.contextmanager
def log_context(**values: object) -> Iterator[None]:
    """Add ``values`` (``None`` skipped) to every record logged inside the block."""

    merged = dict(_context.get())
    merged.update({key: value for key, value in values.items() if value is not None})
    token = _context.set(merged)
    try:
        yield
    finally:
        _context.reset(token)


logger = get_logger()
