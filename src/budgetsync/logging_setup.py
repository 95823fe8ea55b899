"""Centralized logging configuration for the ``budgetsync`` package.

- ``configure_logging(...)``: attach a single ``StreamHandler`` to the package
  root logger. Called once by the CLI at startup.
- ``get_logger(name)``: acquire a logger, making sure the package root logger
  has a ``NullHandler`` while nothing is configured.

Library modules never attach handlers of their own.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

_PKG_LOGGER_NAME = "budgetsync"
_CONFIGURED = False


def _parse_level(level: str | None) -> int:
    if level is None:
        return logging.INFO
    return getattr(logging, level.upper())


def configure_logging(
    level: str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Configure the package root logger exactly once.

    ``level`` is a level name such as ``"DEBUG"``; None means INFO.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    numeric_level = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s"))

    logger.setLevel(numeric_level)
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, silent until an application configures handlers."""
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
