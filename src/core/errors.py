"""Ephemera exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class EphemeraError(Exception):
    """Base exception for all Ephemera failures."""


class EphemeraConfigError(EphemeraError):
    """Raised for invalid runtime configuration."""


class EphemeraIngestionError(EphemeraError):
    """Raised when a temporary load pipeline cannot complete."""

    reason = "ingestion"


class EphemeraExtractionError(EphemeraIngestionError):
    """Raised when source extraction fails or returns nothing."""

    reason = "extraction"


class EphemeraSubmissionError(EphemeraIngestionError):
    """Raised when the query engine rejects or ignores a load spec."""

    reason = "empty-result"


class EphemeraPreconditionError(EphemeraIngestionError):
    """Raised when a source descriptor lacks ingestion info or connection."""

    reason = "precondition"


class EphemeraLoadConflictError(EphemeraIngestionError):
    """Raised when another load already holds the claim for a request id."""

    reason = "conflict"


class EphemeraLoadCancelledError(EphemeraIngestionError):
    """Raised when a load is cancelled before it starts."""

    reason = "cancelled"


class EphemeraStoreError(EphemeraError):
    """Raised for registry and source catalog persistence failures."""


class EphemeraTransferError(EphemeraError):
    """Raised when a staged file cannot be moved to remote storage."""


class EphemeraEngineError(EphemeraError):
    """Raised for query engine load, purge, and lookup failures."""


class EphemeraSourceSpecError(EphemeraError):
    """Raised for invalid source descriptor files."""
