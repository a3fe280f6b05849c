"""Logging setup driven by LoggingSettings.

Called once from the FastAPI lifespan; safe to call again (handlers are replaced).
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .config import settings

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_formatter(fmt: str) -> logging.Formatter:
    if fmt.lower() == "json":
        return JsonFormatter()
    return logging.Formatter(_TEXT_FORMAT)


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger from settings."""
    log_settings = settings.logging
    formatter = build_formatter(log_settings.format)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_settings.file:
        handlers.append(logging.FileHandler(log_settings.file, encoding="utf-8"))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.setLevel((level or log_settings.level).upper())

    # pdfminer is extremely chatty at DEBUG
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
