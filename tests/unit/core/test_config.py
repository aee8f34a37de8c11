"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import EphemeraConfig
from core.errors import EphemeraConfigError


def test_from_env_reads_data_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve data root from environment."""
    monkeypatch.setenv("EPHEMERA_DATA_ROOT", "./.tmp-ephemera")

    config = EphemeraConfig.from_env()

    assert config.data_root.name == ".tmp-ephemera"


def test_from_env_uses_load_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unset load variables should fall back to the documented defaults."""
    for name in (
        "EPHEMERA_LOAD_TIMEOUT",
        "EPHEMERA_MAX_ROW",
        "EPHEMERA_POLL_STRATEGY",
        "EPHEMERA_TRANSFER_URI",
    ):
        monkeypatch.delenv(name, raising=False)

    config = EphemeraConfig.from_env()

    assert (
        config.load_timeout_seconds == 900
        and config.max_row == 1_000_000
        and config.poll_strategy == "legacy"
        and config.transfer_uri is None
    )


def test_from_env_raises_for_invalid_max_row(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric row cap."""
    monkeypatch.setenv("EPHEMERA_MAX_ROW", "not-a-number")

    with pytest.raises(EphemeraConfigError):
        EphemeraConfig.from_env()

    assert os.getenv("EPHEMERA_MAX_ROW") == "not-a-number"


def test_from_env_rejects_unknown_poll_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Only legacy and bounded polling are accepted."""
    monkeypatch.setenv("EPHEMERA_POLL_STRATEGY", "eager")

    with pytest.raises(EphemeraConfigError):
        EphemeraConfig.from_env()


def test_from_env_rejects_negative_start_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Async start delay cannot be negative."""
    monkeypatch.setenv("EPHEMERA_ASYNC_START_DELAY", "-1")

    with pytest.raises(EphemeraConfigError):
        EphemeraConfig.from_env()
