"""Structured logging configuration.

Console output stays human-readable; ``app.log`` and ``error.log`` hold one
JSON object per line so link ids and platforms can be queried directly.
"""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pythonjsonlogger import jsonlogger

from linkvault.config import settings

# Context keys promoted to top-level JSON fields when present on a record
CONTEXT_FIELDS = ("link_id", "product_id", "platform", "short_code", "status")


class LinkJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with UTC timestamp, level, source and link context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = (
            datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")
        )
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.filename}:{record.lineno}"
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(base_dir: str | Path | None = None) -> logging.Logger:
    """Install console and JSON file handlers on the root logger.

    Args:
        base_dir: Directory that holds the log folder; defaults to the cwd.
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / settings.log_dir
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s"))
    root_logger.addHandler(console)

    formatter = LinkJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    root_logger.addHandler(_rotating_handler(logs_dir / "app.log", logging.DEBUG, formatter))
    root_logger.addHandler(_rotating_handler(logs_dir / "error.log", logging.ERROR, formatter))

    # httpx logs every validation request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)

    return root_logger


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adapter that attaches fixed context (link_id, platform, ...) to every record."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, **context) -> ContextLoggerAdapter:
    """
    Get a logger bound to context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Fields such as link_id='...' or platform='amazon'
    """
    return ContextLoggerAdapter(logging.getLogger(name), context)
