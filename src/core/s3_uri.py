"""S3 URI parsing helpers.

This module centralizes S3 URI parsing for the transfer and engine layers.
It keeps URI validation behavior consistent across the codebase.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import EphemeraConfigError, EphemeraTransferError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 location model."""

    bucket: str
    prefix: str

    def object_uri(self, file_name: str) -> str:
        """Return the ``s3://`` URI of one object under this prefix."""
        return f"s3://{self.bucket}/{self.object_key(file_name)}"

    def object_key(self, file_name: str) -> str:
        return f"{self.prefix.rstrip('/')}/{file_name}"


def parse_s3_uri(uri: str, domain: str) -> S3Location:
    """Parse and validate an S3 URI.

    Args:
        uri: URI in format ``s3://bucket/prefix``.
        domain: Error domain string ("config" or "transfer").

    Returns:
        Parsed bucket and prefix pair.

    Raises:
        EphemeraConfigError: For config-domain parse failures.
        EphemeraTransferError: For transfer-domain parse failures.
    """
    if not uri.startswith("s3://"):
        _raise_uri_error(uri, domain)
    stripped_uri = uri.removeprefix("s3://")
    if "/" not in stripped_uri:
        _raise_uri_error(uri, domain)
    bucket, prefix = stripped_uri.split("/", 1)
    if not bucket or not prefix:
        _raise_uri_error(uri, domain)
    return S3Location(bucket=bucket, prefix=prefix)


def _raise_uri_error(uri: str, domain: str) -> None:
    """Raise a domain-specific invalid URI error.

    Raises:
        EphemeraConfigError: For config domain.
        EphemeraTransferError: For transfer domain.
    """
    message = (
        f"Invalid S3 URI '{uri}': expected s3://bucket/prefix. "
        "Provide both bucket and prefix."
    )
    if domain == "config":
        raise EphemeraConfigError(message)
    raise EphemeraTransferError(message)
