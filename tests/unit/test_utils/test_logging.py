"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

from canvasrelay.config.settings import LoggingConfig
from canvasrelay.utils.logging import setup_logging


def test_repeated_setup_replaces_handlers() -> None:
    setup_logging(LoggingConfig())
    setup_logging(LoggingConfig())
    assert len(logging.getLogger("canvasrelay").handlers) == 1
    assert len(logging.getLogger("mcp").handlers) == 1


def test_file_handler_creates_directory(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "relay.log"
    setup_logging(LoggingConfig(file=str(log_file)))
    logging.getLogger("canvasrelay.test").warning("hello")
    for handler in logging.getLogger("canvasrelay").handlers:
        handler.flush()
    assert "hello" in log_file.read_text()
    setup_logging(LoggingConfig())


def test_mcp_logger_level() -> None:
    setup_logging(LoggingConfig(level="INFO"))
    assert logging.getLogger("canvasrelay").level == logging.INFO
    assert logging.getLogger("mcp").level == logging.WARNING

    setup_logging(LoggingConfig(level="DEBUG"))
    assert logging.getLogger("mcp").level == logging.DEBUG
    setup_logging(LoggingConfig())
