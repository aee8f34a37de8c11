"""Runtime configuration model for Ephemera.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_ASYNC_START_DELAY_SECONDS,
    DEFAULT_DATA_ROOT,
    DEFAULT_LOAD_TIMEOUT_SECONDS,
    DEFAULT_LOAD_WORKERS,
    DEFAULT_MAX_ROW,
    DEFAULT_POLL_STRATEGY,
    POLL_STRATEGIES,
)
from core.errors import EphemeraConfigError


@dataclass(frozen=True)
class EphemeraConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root for registry records, sources, staging, and engine data.
        load_timeout_seconds: Bulk-load timeout budget used to derive the poll interval.
        max_row: Hard cap on rows extracted from a source connection.
        async_start_delay_seconds: Grace period before async loads publish progress.
        poll_strategy: ``legacy`` (90 fixed ticks) or ``bounded`` (fits the timeout).
        transfer_uri: Optional ``s3://bucket/prefix`` destination for staged files.
        s3_region: Optional default AWS region for S3 operations.
        s3_profile: Optional AWS profile for boto3 session initialization.
        load_workers: Worker count for background loads submitted through the SDK.
    """

    data_root: Path
    load_timeout_seconds: int = DEFAULT_LOAD_TIMEOUT_SECONDS
    max_row: int = DEFAULT_MAX_ROW
    async_start_delay_seconds: float = DEFAULT_ASYNC_START_DELAY_SECONDS
    poll_strategy: str = DEFAULT_POLL_STRATEGY
    transfer_uri: str | None = None
    s3_region: str | None = None
    s3_profile: str | None = None
    load_workers: int = DEFAULT_LOAD_WORKERS

    @classmethod
    def from_env(cls) -> "EphemeraConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            EphemeraConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("EPHEMERA_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            load_timeout_seconds=_parse_non_negative_int(
                "EPHEMERA_LOAD_TIMEOUT", str(DEFAULT_LOAD_TIMEOUT_SECONDS)
            ),
            max_row=_parse_positive_int("EPHEMERA_MAX_ROW", str(DEFAULT_MAX_ROW)),
            async_start_delay_seconds=_parse_delay(
                os.getenv("EPHEMERA_ASYNC_START_DELAY", str(DEFAULT_ASYNC_START_DELAY_SECONDS))
            ),
            poll_strategy=_parse_poll_strategy(
                os.getenv("EPHEMERA_POLL_STRATEGY", DEFAULT_POLL_STRATEGY)
            ),
            transfer_uri=os.getenv("EPHEMERA_TRANSFER_URI") or None,
            s3_region=os.getenv("EPHEMERA_S3_REGION"),
            s3_profile=os.getenv("EPHEMERA_S3_PROFILE"),
            load_workers=_parse_positive_int("EPHEMERA_LOAD_WORKERS", str(DEFAULT_LOAD_WORKERS)),
        )


def _parse_int(env_name: str, default_value: str) -> int:
    """Parse one integer environment value.

    Args:
        env_name: Environment variable name.
        default_value: Value used when the variable is unset.

    Returns:
        Parsed integer.

    Raises:
        EphemeraConfigError: If value cannot be parsed into int.
    """
    raw_value = os.getenv(env_name, default_value)
    try:
        return int(raw_value)
    except ValueError as error:
        raise EphemeraConfigError(
            f"Invalid {env_name} value: expected integer, got '{raw_value}'. "
            f"Set {env_name} to a numeric value."
        ) from error


def _parse_positive_int(env_name: str, default_value: str) -> int:
    value = _parse_int(env_name, default_value)
    if value <= 0:
        raise EphemeraConfigError(
            f"Invalid {env_name} value: expected a positive integer, got {value}."
        )
    return value


def _parse_non_negative_int(env_name: str, default_value: str) -> int:
    value = _parse_int(env_name, default_value)
    if value < 0:
        raise EphemeraConfigError(
            f"Invalid {env_name} value: expected zero or more seconds, got {value}."
        )
    return value


def _parse_delay(raw_value: str) -> float:
    """Parse the async start delay in seconds."""
    try:
        delay = float(raw_value)
    except ValueError as error:
        raise EphemeraConfigError(
            "Invalid EPHEMERA_ASYNC_START_DELAY value: "
            f"expected seconds, got '{raw_value}'."
        ) from error
    if delay < 0:
        raise EphemeraConfigError(
            f"Invalid EPHEMERA_ASYNC_START_DELAY value: expected >= 0, got {delay}."
        )
    return delay


def _parse_poll_strategy(raw_value: str) -> str:
    if raw_value not in POLL_STRATEGIES:
        raise EphemeraConfigError(
            f"Invalid EPHEMERA_POLL_STRATEGY value '{raw_value}'. "
            f"Use one of: {', '.join(POLL_STRATEGIES)}."
        )
    return raw_value
