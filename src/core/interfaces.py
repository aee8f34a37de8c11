"""Collaborator contracts for the temporary load pipeline.

Extraction, transfer, engine access, and progress transport are swappable
back-ends. The pipeline depends only on these narrow protocols.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Protocol, Sequence

from core.filters import SourceFilter
from core.types import ConnectionInfo, Field, LinkIngestionInfo, ProgressEvent


class StagingExtractor(Protocol):
    """Materializes source rows into local staging files."""

    def extract_to_staging(
        self,
        connection: ConnectionInfo,
        ingestion: LinkIngestionInfo,
        output_dir: Path,
        name_prefix: str,
        fields: Sequence[Field],
        filters: Sequence[SourceFilter],
        max_rows: int,
    ) -> list[Path]: ...


class RemoteTransfer(Protocol):
    """Moves a staged file to where the engine can read it."""

    def put_remote(self, local_path: Path) -> list[str]: ...


class QueryEngine(Protocol):
    """Ingestion and existence endpoints of the query engine."""

    def submit(self, spec_json: str, params: Mapping[str, object]) -> dict[str, object] | None: ...

    def exists_loaded(self, engine_name: str) -> bool: ...

    def purge(self, engine_name: str) -> None: ...

    def list_loaded_names(self) -> set[str]: ...


class ProgressReporter(Protocol):
    """Fire-and-forget sink for progress events."""

    def publish(self, topic: str, event: ProgressEvent) -> None: ...
