"""
Logging setup for download runs.

Console output goes through Rich so log lines and the resource progress bar
share one terminal; the optional run log keeps one JSON object per event so a
run can be audited afterwards (which URLs were cache hits, which were fetched,
which failed).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig


LOGGER_NAME = "epubee_dl"

# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def setup_logging(
    cfg: LoggingConfig,
    log_dir: Path | None,
    console: Console | None = None,
) -> logging.Logger:
    """Configure the package logger for one run.

    Args:
        cfg: Logging section of the application config
        log_dir: Directory for the run log, skipped when None
        console: Rich console shared with progress output (Rich's default if None)

    Returns:
        The configured ``epubee_dl`` logger
    """
    level = _level_from_string(cfg.level)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    if cfg.console:
        console_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_time=False,
            show_level=True,
            show_path=False,
        )
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(console_handler)

    if cfg.file and log_dir is not None:
        logger.addHandler(_run_log_handler(log_dir / cfg.filename, cfg.format, level))

    return logger


def log_event(logger: logging.Logger | None, message: str, level: int = logging.INFO, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, message, extra=fields)


class JsonlFormatter(logging.Formatter):
    """One JSON object per record, with extra= fields merged in at top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(event_fields(record))
        return json.dumps(payload, ensure_ascii=True, default=str)


def event_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the structured fields attached to record by log_event."""
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


def _run_log_handler(path: Path, fmt: str, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    if fmt == "jsonl":
        handler.setFormatter(JsonlFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    return handler


def _level_from_string(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)
