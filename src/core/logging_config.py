"""Structured logging configuration.

This module configures structlog once per process with a JSON format and
a level taken from ``EPHEMERA_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Any

import structlog

_CONFIGURE_LOCK = threading.Lock()
_CONFIGURED = False


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured output.
    """
    _configure_once()
    return structlog.get_logger(name)


def _configure_once() -> None:
    global _CONFIGURED
    with _CONFIGURE_LOCK:
        if _CONFIGURED:
            return
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(_resolve_level()),
            cache_logger_on_first_use=True,
        )
        _CONFIGURED = True


def _resolve_level() -> int:
    """Map ``EPHEMERA_LOG_LEVEL`` to a logging level, defaulting to INFO."""
    level_name = os.getenv("EPHEMERA_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO
