"""Logging setup for canvasrelay.

The relay and the MCP SDK it embeds share one set of handlers. uvicorn
configures its own loggers when the server starts and is left alone.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from canvasrelay.config.settings import LoggingConfig

PACKAGE_LOGGER = "canvasrelay"
MCP_LOGGER = "mcp"


def _build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        path = Path(config.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))

    formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def _replace_handlers(logger: logging.Logger, handlers: list[logging.Handler]) -> None:
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        logger.addHandler(handler)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the ``canvasrelay`` and ``mcp`` loggers.

    Safe to call more than once: handlers from a previous call are
    closed and replaced. The MCP SDK logs every request at INFO, so its
    logger is held at WARNING unless debug logging is requested.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
    """
    if config is None:
        config = LoggingConfig()

    level = getattr(logging, config.level.upper(), logging.INFO)
    handlers = _build_handlers(config)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    _replace_handlers(package_logger, handlers)

    mcp_logger = logging.getLogger(MCP_LOGGER)
    mcp_logger.setLevel(level if level <= logging.DEBUG else logging.WARNING)
    _replace_handlers(mcp_logger, handlers)

    package_logger.info("Logging initialized at %s level", config.level)
