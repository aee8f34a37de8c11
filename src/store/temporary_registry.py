"""Temporary copy registry.

This module stores one JSON document per temporary copy under the data
root so repeated loads of the same logical copy can be reused, and tracks
in-flight claims so concurrent first-time loads do not double-submit.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
import threading
from typing import Iterable, Iterator

from core.constants import TEMPORARIES_DIR_NAME
from core.errors import EphemeraLoadConflictError, EphemeraStoreError
from core.interfaces import QueryEngine
from core.logging_config import get_logger
from core.types import TemporaryCopyRecord
from store.record_payload import temporary_record_from_payload, temporary_record_to_payload
from store.registry_io import read_json_file, write_json_file

_LOGGER = get_logger(__name__)


class TemporaryRegistry:
    """Persistent keyed store of temporary copy records."""

    def __init__(self, data_root: Path, engine: QueryEngine) -> None:
        self._data_root = data_root.expanduser().resolve()
        self._records_root = self._data_root / TEMPORARIES_DIR_NAME
        self._records_root.mkdir(parents=True, exist_ok=True)
        self._engine = engine
        self._lock = threading.Lock()
        self._claims: set[str] = set()

    def lookup(self, record_id: str) -> TemporaryCopyRecord | None:
        """Load one record by id, or None when it was never stored."""
        record_path = self._record_path(record_id)
        if not record_path.exists():
            return None
        payload = read_json_file(record_path)
        if not isinstance(payload, dict):
            raise EphemeraStoreError(
                f"Invalid temporary record at {record_path}: expected object."
            )
        return temporary_record_from_payload(payload, record_path)

    def upsert(self, record: TemporaryCopyRecord) -> TemporaryCopyRecord:
        """Create or replace the record stored under ``record.id``."""
        stored = replace(record, updated_at=_utc_now())
        with self._lock:
            write_json_file(self._record_path(record.id), temporary_record_to_payload(stored))
        return stored

    def reset_expiry(self, record: TemporaryCopyRecord) -> TemporaryCopyRecord:
        """Return the record with ``expires_at`` pushed to now plus its lifetime.

        Expiry never moves backwards, so a reset always yields a strictly
        later value than the one it replaces.
        """
        candidate = _utc_now() + timedelta(seconds=record.expired_seconds)
        floor = record.expires_at + timedelta(microseconds=1)
        return replace(record, expires_at=max(candidate, floor))

    def list_records(self) -> list[TemporaryCopyRecord]:
        """Load every stored record ordered by creation time."""
        records = []
        for record_path in sorted(self._records_root.glob("*.json")):
            payload = read_json_file(record_path)
            if not isinstance(payload, dict):
                raise EphemeraStoreError(
                    f"Invalid temporary record at {record_path}: expected object."
                )
            records.append(temporary_record_from_payload(payload, record_path))
        return sorted(records, key=lambda item: item.created_at)

    def list_by_engine_names(self, engine_names: Iterable[str]) -> list[TemporaryCopyRecord]:
        """Return records whose engine-side name is in ``engine_names``."""
        wanted = set(engine_names)
        return [record for record in self.list_records() if record.engine_name in wanted]

    def delete(self, engine_name: str) -> None:
        """Purge the engine-side table; the engine is the source of truth for existence."""
        self._engine.purge(engine_name)
        _LOGGER.info("temporary_engine_table_purged", engine_name=engine_name)

    def remove(self, record_id: str) -> bool:
        """Remove one stored record, returning whether it existed."""
        record_path = self._record_path(record_id)
        with self._lock:
            if not record_path.exists():
                return False
            try:
                record_path.unlink()
            except OSError as error:
                raise EphemeraStoreError(
                    f"Failed to remove temporary record {record_path}: {error}."
                ) from error
        return True

    @contextmanager
    def claim(self, record_id: str) -> Iterator[None]:
        """Hold the in-flight claim for ``record_id`` for the duration of a load.

        Raises:
            EphemeraLoadConflictError: If another load already holds the claim.
        """
        with self._lock:
            if record_id in self._claims:
                raise EphemeraLoadConflictError(
                    f"Temporary load '{record_id}' is already in progress. "
                    "Wait for it to finish and retry with the same request id."
                )
            self._claims.add(record_id)
        try:
            yield
        finally:
            with self._lock:
                self._claims.discard(record_id)

    def is_claimed(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._claims

    def _record_path(self, record_id: str) -> Path:
        if not record_id or "/" in record_id or record_id.startswith("."):
            raise EphemeraStoreError(f"Invalid temporary record id {record_id!r}.")
        return self._records_root / f"{record_id}.json"


def build_new_record(
    record_id: str,
    engine_name: str,
    source_id: str,
    engine_query_token: str | None,
    expired_seconds: int,
    serialized_filters: str,
    is_volatile: bool,
    is_async: bool,
) -> TemporaryCopyRecord:
    """Construct a PENDING record for a first-time load."""
    timestamp = _utc_now()
    return TemporaryCopyRecord(
        id=record_id,
        engine_name=engine_name,
        source_id=source_id,
        engine_query_token=engine_query_token,
        expires_at=timestamp + timedelta(seconds=expired_seconds),
        serialized_filters=serialized_filters,
        is_volatile=is_volatile,
        is_async=is_async,
        status="PENDING",
        expired_seconds=expired_seconds,
        created_at=timestamp,
        updated_at=timestamp,
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
