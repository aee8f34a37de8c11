"""Staged file transfer to engine-readable storage.

This module encapsulates boto3 client creation and staged file upload.
When no destination is configured the local path is handed to the engine
unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import boto3

from core.config import EphemeraConfig
from core.errors import EphemeraTransferError
from core.interfaces import RemoteTransfer
from core.logging_config import get_logger
from core.s3_uri import S3Location, parse_s3_uri

_LOGGER = get_logger(__name__)


class LocalTransfer:
    """Identity transfer used when the engine reads the local staging area."""

    def put_remote(self, local_path: Path) -> list[str]:
        return [str(local_path)]


class S3RemoteTransfer:
    """Upload staged files under one S3 prefix."""

    def __init__(self, location: S3Location, s3_client: Any) -> None:
        self._location = location
        self._s3_client = s3_client

    def put_remote(self, local_path: Path) -> list[str]:
        """Upload one staged file and return its object URI.

        Raises:
            EphemeraTransferError: If upload fails.
        """
        object_key = self._location.object_key(local_path.name)
        try:
            self._s3_client.upload_file(str(local_path), self._location.bucket, object_key)
        except Exception as error:
            raise EphemeraTransferError(
                f"Failed to transfer staged file {local_path} to "
                f"s3://{self._location.bucket}/{object_key}: {error}. "
                "Check AWS credentials and retry the load."
            ) from error
        remote_uri = self._location.object_uri(local_path.name)
        _LOGGER.info("staged_file_transferred", local_path=str(local_path), remote_uri=remote_uri)
        return [remote_uri]


def build_remote_transfer(config: EphemeraConfig) -> RemoteTransfer:
    """Build the transfer step configured for this runtime.

    Args:
        config: Runtime config with optional transfer destination.

    Returns:
        S3 transfer when a destination is configured, else identity transfer.
    """
    if not config.transfer_uri:
        return LocalTransfer()
    location = parse_s3_uri(config.transfer_uri, domain="config")
    return S3RemoteTransfer(location, create_s3_client(config))


def create_s3_client(config: EphemeraConfig) -> Any:
    """Create a boto3 S3 client from config session settings."""
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")
