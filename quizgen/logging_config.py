"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import settings

# Context variable for correlating all log entries emitted while a single
# question is being generated (rate-limit wait, HTTP call, parsing).
generation_id_context: ContextVar[Optional[str]] = ContextVar(
    "generation_id", default=None
)


class GenerationContextFilter(logging.Filter):
    """Attach the current generation id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.generation_id = generation_id_context.get()
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        generation_id = getattr(record, "generation_id", None)
        if generation_id:
            log_entry["generation_id"] = generation_id

        # Structured fields passed via ``extra=``
        for field in ("status_code", "attempt", "wait_seconds", "provider"):
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> None:
    """
    Configure logging for the quizgen package.

    Args:
        log_level: Level name (defaults to ``settings.log_level``)
        log_file: Optional file to mirror console output into
        json_format: Emit JSON lines; defaults to True in production
    """
    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    if json_format is None:
        json_format = settings.env == "production"

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "json" if json_format else "default",
            "filters": ["generation_context"],
            "stream": sys.stderr,
        },
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "level": level,
            "formatter": "json",
            "filters": ["generation_context"],
            "filename": log_file,
            "encoding": "utf-8",
        }

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "generation_context": {"()": GenerationContextFilter},
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": handlers,
        "loggers": {
            "quizgen": {
                "level": level,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            # Request lines are logged by our provider already
            "httpx": {
                "level": logging.WARNING,
            },
        },
    }

    logging.config.dictConfig(logging_config)


def mask_secret(secret: Optional[str], visible: int = 6) -> str:
    """
    Render a credential safely for logs.

    Args:
        secret: The secret value (may be None)
        visible: Number of leading characters to keep

    Returns:
        Masked preview such as ``"AIzaSy..."`` or ``"NOT_SET"``
    """
    if not secret:
        return "NOT_SET"
    return f"{secret[:visible]}..."
