"""Durable storage for source descriptors.

Volatile sources arrive without an identity; the load pipeline saves them
here first so temporary copy records can reference them by id.
"""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from core.constants import SOURCE_ID_PREFIX, SOURCES_DIR_NAME
from core.errors import EphemeraStoreError
from core.source_spec import source_from_payload, source_to_payload
from core.types import SourceDescriptor
from store.registry_io import read_json_file, write_json_file


class SourceCatalog:
    """Filesystem-backed source descriptor catalog."""

    def __init__(self, data_root: Path) -> None:
        self._sources_root = data_root.expanduser().resolve() / SOURCES_DIR_NAME
        self._sources_root.mkdir(parents=True, exist_ok=True)

    def save(self, source: SourceDescriptor) -> SourceDescriptor:
        """Persist a descriptor, assigning an id when it has none.

        The descriptor is updated in place and returned.
        """
        if not source.id:
            source.id = f"{SOURCE_ID_PREFIX}{uuid4().hex}"
        write_json_file(self._source_path(source.id), source_to_payload(source))
        return source

    def load(self, source_id: str) -> SourceDescriptor:
        """Load one persisted descriptor by id."""
        source_path = self._source_path(source_id)
        payload = read_json_file(source_path)
        if not isinstance(payload, dict):
            raise EphemeraStoreError(f"Invalid source document at {source_path}: expected object.")
        return source_from_payload(payload)

    def exists(self, source_id: str) -> bool:
        return self._source_path(source_id).exists()

    def _source_path(self, source_id: str) -> Path:
        return self._sources_root / f"{source_id}.json"
