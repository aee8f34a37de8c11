"""Shared typed models.

This module defines the source descriptor, temporary copy record, and
progress event models shared by the ingest pipeline, registry, and SDK.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from core.constants import DEFAULT_EXPIRED_SECONDS

DataType = Literal["STRING", "INTEGER", "FLOAT", "BOOLEAN", "TIMESTAMP"]
FieldRole = Literal["TIMESTAMP", "DIMENSION", "MEASURE"]
SourceType = Literal["VOLATILITY", "ENGINE", "LINK"]
LoadStatus = Literal["PENDING", "ENABLE", "FAIL"]

DATA_TYPES: tuple[DataType, ...] = ("STRING", "INTEGER", "FLOAT", "BOOLEAN", "TIMESTAMP")
FIELD_ROLES: tuple[FieldRole, ...] = ("TIMESTAMP", "DIMENSION", "MEASURE")
SOURCE_TYPES: tuple[SourceType, ...] = ("VOLATILITY", "ENGINE", "LINK")
LOAD_STATUSES: tuple[LoadStatus, ...] = ("PENDING", "ENABLE", "FAIL")


@dataclass
class Field:
    """One column of a source descriptor.

    Attributes:
        name: Column name in the source query and staged file.
        data_type: Physical data type.
        logical_type: Logical type; TIMESTAMP marks time candidates.
        role: Column role in the engine-side table.
        seq: Ordinal position within the descriptor.
    """

    name: str
    data_type: DataType = "STRING"
    logical_type: DataType | None = None
    role: FieldRole = "DIMENSION"
    seq: int = 0

    def __post_init__(self) -> None:
        if self.logical_type is None:
            self.logical_type = self.data_type


@dataclass(frozen=True)
class ConnectionInfo:
    """Live query connection for a linked source.

    Attributes:
        url: SQLAlchemy database URL.
    """

    url: str


@dataclass(frozen=True)
class LinkIngestionInfo:
    """How rows are pulled from a linked source.

    Attributes:
        query: Optional SQL query producing the source rows.
        table: Optional table name used when no query is given.
        expired_seconds: Lifetime of a temporary copy after each reuse.
    """

    query: str | None = None
    table: str | None = None
    expired_seconds: int = DEFAULT_EXPIRED_SECONDS


@dataclass
class SourceDescriptor:
    """Externally-described data source.

    Owned by the caller. The load pipeline assigns ``id`` to volatile
    sources and appends a synthesized time field when none exists.
    """

    name: str
    engine_name: str
    source_type: SourceType = "LINK"
    id: str = ""
    fields: list[Field] = field(default_factory=list)
    connection: ConnectionInfo | None = None
    ingestion: LinkIngestionInfo | None = None

    def has_timestamp_field(self) -> bool:
        """Return whether any field already holds the TIMESTAMP role."""
        return any(item.role == "TIMESTAMP" for item in self.fields)

    def add_field(self, new_field: Field) -> None:
        """Append a field with the next sequence number."""
        new_field.seq = len(self.fields)
        self.fields.append(new_field)


@dataclass(frozen=True)
class TemporaryCopyRecord:
    """Registry entry tracking one temporary copy in the query engine.

    Attributes:
        id: Caller-facing identity used for dedup.
        engine_name: Name of the copy inside the query engine.
        source_id: Back-reference to the source descriptor.
        engine_query_token: Opaque handle returned by the engine on submit.
        expires_at: Absolute UTC expiry, refreshed on reuse and completion.
        serialized_filters: JSON snapshot of the filters used for extraction.
        is_volatile: Whether the source had to be persisted before loading.
        is_async: Whether the load ran in asynchronous mode.
        status: PENDING, ENABLE, or FAIL.
        expired_seconds: Lifetime applied on each expiry reset.
        created_at: UTC creation timestamp.
        updated_at: UTC timestamp of the latest persisted change.
    """

    id: str
    engine_name: str
    source_id: str
    engine_query_token: str | None
    expires_at: datetime
    serialized_filters: str
    is_volatile: bool
    is_async: bool
    status: LoadStatus
    expired_seconds: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification for a running load.

    Attributes:
        percent: Progress in [0, 100], or -1 for failure.
        code: Status keyword.
    """

    percent: int
    code: str

    def __post_init__(self) -> None:
        if not -1 <= self.percent <= 100:
            raise ValueError(f"Progress percent must be within [-1, 100], got {self.percent}.")

    @property
    def is_failure(self) -> bool:
        return self.percent == -1

    def to_payload(self) -> dict[str, object]:
        """Serialize to the ``{percent, code}`` transport payload."""
        return {"percent": self.percent, "code": self.code}
