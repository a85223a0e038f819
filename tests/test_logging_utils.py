"""Tests for logger setup and the JSONL run log."""

from __future__ import annotations

import io
import json
import logging

from rich.console import Console
from rich.logging import RichHandler

from epubee_dl.config import LoggingConfig
from epubee_dl.logging_utils import log_event, setup_logging


def test_console_handler_uses_given_console(tmp_path):
    console = Console(file=io.StringIO(), width=200)

    logger = setup_logging(LoggingConfig(), tmp_path, console=console)

    handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
    assert len(handlers) == 1
    assert handlers[0].console is console

    log_event(logger, "cache hit http://example.com/a", event="cache_hit")
    assert "cache hit http://example.com/a" in console.file.getvalue()


def test_run_log_records_event_fields(tmp_path):
    cfg = LoggingConfig(console=False, file=True, filename="run.jsonl")

    logger = setup_logging(cfg, tmp_path)
    log_event(logger, "downloaded", event="downloaded", url="http://example.com/a", size=3)
    log_event(logger, "debug only", level=logging.DEBUG, event="fetch_timeout")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / "run.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["message"] == "downloaded"
    assert entry["level"] == "INFO"
    assert entry["event"] == "downloaded"
    assert entry["url"] == "http://example.com/a"
    assert entry["size"] == 3
    assert "lineno" not in entry


def test_setup_replaces_previous_handlers(tmp_path):
    first = Console(file=io.StringIO())
    second = Console(file=io.StringIO())

    setup_logging(LoggingConfig(), tmp_path, console=first)
    logger = setup_logging(LoggingConfig(), tmp_path, console=second)

    assert [h.console for h in logger.handlers] == [second]


def test_log_event_without_logger_is_noop():
    log_event(None, "ignored", event="cache_hit")
