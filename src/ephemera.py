"""Public SDK surface for Ephemera.

This module provides a stable import path for SDK users.
It re-exports the primary client and typed source models.
"""

from __future__ import annotations

from core.config import EphemeraConfig
from core.filters import BoundFilter, InclusionFilter
from core.source_spec import load_source_spec
from core.types import (
    ConnectionInfo,
    Field,
    LinkIngestionInfo,
    ProgressEvent,
    SourceDescriptor,
    TemporaryCopyRecord,
)
from ingest.pipeline import TemporaryLoadRunner
from store.temporary_sdk import EphemeraClient

__all__ = [
    "BoundFilter",
    "ConnectionInfo",
    "EphemeraClient",
    "EphemeraConfig",
    "Field",
    "InclusionFilter",
    "LinkIngestionInfo",
    "ProgressEvent",
    "SourceDescriptor",
    "TemporaryCopyRecord",
    "TemporaryLoadRunner",
    "load_source_spec",
]
