from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.logging import RichHandler

from .config import LoggingConfig


LOGGER_NAME = "feed_central"

# LogRecord attribute holding the structured fields passed to log_event.
FIELDS_ATTR = "event_fields"


def setup_logging(cfg: LoggingConfig, log_dir: Path | None = None) -> logging.Logger:
    """Configure the package logger.

    Console output goes through rich with event fields appended as
    key=value pairs; the optional file is JSONL (one event per line) or
    plain text.
    """
    level = _level_from_string(cfg.level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.propagate = False

    if cfg.console:
        console_handler = RichHandler(rich_tracebacks=True, show_time=False, show_level=True)
        console_handler.setFormatter(EventFormatter())
        _add_handler(logger, console_handler, level)

    if cfg.file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / cfg.filename, encoding="utf-8")
        file_handler.setFormatter(_build_file_formatter(cfg.format))
        _add_handler(logger, file_handler, level)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if not name:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def log_event(
    logger: logging.Logger | None,
    message: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log message with structured fields (event=..., location=..., ...).

    Fields are kept together on the record, so names such as "filename" or
    "module" never collide with LogRecord attributes.
    """
    if logger is None:
        return
    logger.log(level, message, extra={FIELDS_ATTR: fields})


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, FIELDS_ATTR, None) or {})


class EventFormatter(logging.Formatter):
    """Renders "message  key=value ..." with the event name first."""

    def __init__(self, fmt: str = "%(message)s"):
        super().__init__(fmt)

    def formatMessage(self, record: logging.LogRecord) -> str:
        base = super().formatMessage(record)
        fields = event_fields(record)
        if not fields:
            return base
        event = fields.pop("event", None)
        pairs = [f"event={event}"] if event else []
        pairs.extend(f"{key}={_short(value)}" for key, value in fields.items())
        return f"{base}  {' '.join(pairs)}"


class JsonlFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(event_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _short(value: Any, max_chars: int = 120) -> str:
    text = str(value)
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def _add_handler(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    logger.addHandler(handler)


def _build_file_formatter(fmt: str) -> logging.Formatter:
    if fmt == "jsonl":
        return JsonlFormatter()
    return EventFormatter("%(asctime)s %(levelname)s %(message)s")


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
