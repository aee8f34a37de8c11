"""Unit tests for structured logging setup."""

from __future__ import annotations

import logging

from core import logging_config


def test_get_logger_returns_structured_logger() -> None:
    """Loggers accept snake_case events with keyword fields."""
    logger = logging_config.get_logger(__name__)

    logger.info("logging_config_checked", attempt=1)

    assert callable(logger.warning)


def test_resolve_level_falls_back_to_info(monkeypatch) -> None:
    """Unknown level names use INFO."""
    monkeypatch.setenv("EPHEMERA_LOG_LEVEL", "chatty")

    assert logging_config._resolve_level() == logging.INFO


def test_resolve_level_reads_environment(monkeypatch) -> None:
    """Known level names are honored case-insensitively."""
    monkeypatch.setenv("EPHEMERA_LOG_LEVEL", "debug")

    assert logging_config._resolve_level() == logging.DEBUG
