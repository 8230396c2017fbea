"""
Logging setup for the tracker.

Every module logs through ``get_logger(__name__)``; keyword arguments become
structured fields. Tracker lifecycle decisions go to the ``jobtracker.audit``
logger and timings to ``jobtracker.performance``.
"""
import logging
import logging.config
import json
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

# Loggers that receive the configured handlers directly.
MANAGED_LOGGERS = ("jobtracker", "uvicorn", "sqlalchemy.engine")

class JSONFormatter(logging.Formatter):
    """One JSON object per record; structured fields are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
            "thread": record.threadName,
        }
        entry.update(getattr(record, "extra_data", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)

class StructuredLogger:
    """Thin wrapper turning keyword arguments into ``extra_data`` fields."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, exc_info: bool = False, **fields):
        if not self.logger.isEnabledFor(level):
            return
        extra_data = {k: v for k, v in fields.items() if v is not None}
        self.logger.log(level, message, exc_info=exc_info, extra={"extra_data": extra_data})

    def debug(self, message: str, **fields):
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields):
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields):
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields):
        self._log(logging.ERROR, message, **fields)

def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True
) -> None:
    """
    Configure the managed loggers.

    Console output is human readable; the optional rotating file gets JSON lines.
    """
    handlers: Dict[str, Dict[str, Any]] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "stream": sys.stdout,
            "formatter": "standard",
            "level": log_level
        }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "json",
            "level": log_level
        }
    names = list(handlers)
    levels = {"jobtracker": log_level, "uvicorn": "INFO", "sqlalchemy.engine": "WARNING"}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            }
        },
        "handlers": handlers,
        "loggers": {
            name: {"level": levels[name], "handlers": names, "propagate": False}
            for name in MANAGED_LOGGERS
        },
        "root": {"level": log_level, "handlers": names}
    })

def get_logger(name: str) -> StructuredLogger:
    """Structured logger under the ``jobtracker`` namespace."""
    if name.startswith("jobtracker"):
        return StructuredLogger(name)
    return StructuredLogger(f"jobtracker.{name}")

def log_tracker_event(
    event_type: str,
    key: str,
    details: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None
) -> None:
    """
    Audit a tracker decision.

    Args:
        event_type: e.g. 'suppressed', 'tracked', 'superseded', 'released', 'cancelled'
        key: Tracker key the decision applies to
        details: Event-specific fields
        correlation_id: Id of the enqueue attempt, when there is one
    """
    get_logger("audit").info(
        f"Tracker event: {event_type}",
        event_type=event_type,
        key=key,
        correlation_id=correlation_id,
        **(details or {})
    )

def log_performance(
    operation: str,
    duration_ms: float,
    additional_data: Optional[Dict[str, Any]] = None
) -> None:
    get_logger("performance").info(
        f"Performance: {operation}",
        operation=operation,
        duration_ms=round(duration_ms, 3),
        **(additional_data or {})
    )
