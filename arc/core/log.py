"""Diagnostic logging.

User-facing output goes through ``arc.output.console``. This module only
covers diagnostics: a package logger named ``arc`` whose children
(``arc.refs``, ``arc.git`` ...) are silent unless ``ARC_DEBUG`` is set.

    ARC_DEBUG=debug arc rel status 0.21.0
"""

from __future__ import annotations

import logging
import os

__all__ = ["logger", "get_logger", "level_from_env", "setup_logging"]

ENV_VAR = "ARC_DEBUG"

logger = logging.getLogger("arc")
logger.setLevel(logging.CRITICAL + 1)


def get_logger(name: str) -> logging.Logger:
    return logger.getChild(name)


def level_from_env(value: str | None) -> int:
    """Map an ``ARC_DEBUG`` value to a logging level.

    Accepts level names (``debug``, ``info``, ``warning``, ``error``) and
    treats any other non-empty value as ``debug``. Unset or empty disables
    diagnostics entirely.
    """
    if value is None or not value.strip():
        return logging.CRITICAL + 1
    level = logging.getLevelNamesMapping().get(value.strip().upper())
    return level if level is not None else logging.DEBUG


def setup_logging(handler: logging.Handler | None = None) -> None:
    """Attach a stderr handler to the ``arc`` logger, level from ``ARC_DEBUG``."""
    level = level_from_env(os.environ.get(ENV_VAR))
    logger.setLevel(level)
    if level > logging.CRITICAL:
        return

    if handler is None:
        from rich.console import Console
        from rich.logging import RichHandler

        handler = RichHandler(console=Console(stderr=True), show_path=False)

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    logger.propagate = False
    logger.addHandler(handler)
