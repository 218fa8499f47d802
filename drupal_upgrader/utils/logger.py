"""
Logging utilities for drupal-upgrader.

Diagnostic output (what the tool is doing and why) goes through the
standard :mod:`logging` hierarchy rooted at ``drupal_upgrader``. User-facing
progress goes through :mod:`drupal_upgrader.utils.console` instead.

Output captured from external tools (Composer, Drush, PHPStan, tar) is
routed to ``drupal_upgrader.tools.<name>`` loggers so it can be raised to
DEBUG independently of the rest of the package.
"""

from __future__ import annotations

import os
import sys
import logging
import threading
from typing import IO, Optional

from drupal_upgrader.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

ROOT_LOGGER_NAME = "drupal_upgrader"
TOOLS_LOGGER_NAME = f"{ROOT_LOGGER_NAME}.tools"

_logging_configured: bool = False
_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Logging formatter with optional ANSI color support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if self.use_color and self._should_use_color():
            color = self.COLORS.get(levelname)
            if color:
                record.levelname = f"{color}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers must see the plain level name
            record.levelname = levelname

    @staticmethod
    def _should_use_color() -> bool:
        """Determine whether ANSI colors should be emitted."""
        if os.environ.get("NO_COLOR"):
            return False
        if os.environ.get("CI"):
            return False
        try:
            return sys.stderr.isatty()
        except (AttributeError, OSError):
            return False


def level_for_verbosity(verbose: int) -> int:
    """Map a ``-v`` count to a logging level.

    ``0`` shows warnings only, ``1`` adds progress information, ``2`` and
    above enable debug output including captured tool output.
    """
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Configure the ``drupal_upgrader`` logger hierarchy.

    Safe to call multiple times; previous handlers are replaced.

    Args:
        level: Logging level (e.g., ``logging.INFO``, ``logging.DEBUG``).
        verbose: Enable verbose formatting with timestamps.
        stream: Output stream; defaults to ``sys.stderr``.
    """
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.handlers.clear()
        root_logger.setLevel(level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setLevel(level)

        fmt = LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT
        handler.setFormatter(
            ColoredFormatter(
                fmt,
                datefmt=LOG_DATE_FORMAT,
                use_color=not os.environ.get("NO_COLOR"),
            )
        )

        root_logger.addHandler(handler)
        root_logger.propagate = False
        _logging_configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger within the ``drupal_upgrader`` namespace.

    Args:
        name: Logger name, relative (``"core.upgrader"``) or absolute.

    Returns:
        A logger instance under the ``drupal_upgrader`` hierarchy.
    """
    if not name or name == ROOT_LOGGER_NAME:
        logger = logging.getLogger(ROOT_LOGGER_NAME)
    elif name.startswith(f"{ROOT_LOGGER_NAME}."):
        logger = logging.getLogger(name)
    else:
        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    # Library-safe when logging has not been configured
    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


def get_tool_logger(tool: str) -> logging.Logger:
    """Return the logger receiving captured output of an external tool.

    Args:
        tool: Executable name; path components are dropped
            (``vendor/bin/drush`` → ``drupal_upgrader.tools.drush``).
    """
    short = os.path.basename(tool) or tool
    return get_logger(f"{TOOLS_LOGGER_NAME}.{short}")


def is_logging_configured() -> bool:
    """Return True if drupal-upgrader logging has been configured."""
    return _logging_configured


def disable_logging() -> None:
    """Disable all drupal-upgrader logging output."""
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.handlers.clear()
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.NOTSET)
        _logging_configured = False
