"""Logging configuration for deadscan.

All modules log through children of the ``deadscan`` logger, obtained via
``get_logger(__name__)``. The CLI calls ``configure_logging`` once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "deadscan"

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
DEBUG_LOG_FORMAT = (
    "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s:%(lineno)d: %(message)s"
)

_HANDLER_ATTR = "_deadscan_handler"


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``deadscan`` namespace.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        Logger instance.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ``deadscan`` root logger.

    Precedence: debug > quiet > verbose > default (warnings only).
    Calling this again replaces the previously installed handler.

    Args:
        debug: Enable debug logging with source line numbers.
        verbose: Enable info-level logging.
        quiet: Only log errors.
        stream: Output stream (default: stderr).

    Returns:
        The configured root logger.
    """
    if debug:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_ATTR, False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT if debug else LOG_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)

    return logger
