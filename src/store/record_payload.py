"""Shared JSON serialization for temporary copy records.

This module centralizes TemporaryCopyRecord payload conversion.
It is reused by every registry read and write path.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, cast

from core.errors import EphemeraStoreError
from core.types import LOAD_STATUSES, LoadStatus, TemporaryCopyRecord


def temporary_record_to_payload(record: TemporaryCopyRecord) -> dict[str, object]:
    """Serialize a TemporaryCopyRecord into a JSON-safe payload.

    Args:
        record: Temporary copy record.

    Returns:
        Dictionary payload for JSON encoding.
    """
    return {
        "id": record.id,
        "engine_name": record.engine_name,
        "source_id": record.source_id,
        "engine_query_token": record.engine_query_token,
        "expires_at": record.expires_at.isoformat(),
        "serialized_filters": record.serialized_filters,
        "is_volatile": record.is_volatile,
        "is_async": record.is_async,
        "status": record.status,
        "expired_seconds": record.expired_seconds,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


def temporary_record_from_payload(payload: dict[str, Any], payload_path: Path) -> TemporaryCopyRecord:
    """Deserialize a persisted TemporaryCopyRecord payload.

    Args:
        payload: Serialized record payload.
        payload_path: File the payload was read from, for error context.

    Returns:
        Parsed record.

    Raises:
        EphemeraStoreError: If required fields are missing or malformed.
    """
    try:
        token = payload.get("engine_query_token")
        return TemporaryCopyRecord(
            id=str(payload["id"]),
            engine_name=str(payload["engine_name"]),
            source_id=str(payload["source_id"]),
            engine_query_token=str(token) if token is not None else None,
            expires_at=datetime.fromisoformat(str(payload["expires_at"])),
            serialized_filters=str(payload.get("serialized_filters", "[]")),
            is_volatile=bool(payload.get("is_volatile", False)),
            is_async=bool(payload.get("is_async", False)),
            status=_parse_status(payload.get("status"), payload_path),
            expired_seconds=int(payload["expired_seconds"]),
            created_at=datetime.fromisoformat(str(payload["created_at"])),
            updated_at=datetime.fromisoformat(str(payload["updated_at"])),
        )
    except KeyError as error:
        raise EphemeraStoreError(
            f"Invalid temporary record at {payload_path}: missing required field {error.args[0]!r}."
        ) from error
    except ValueError as error:
        raise EphemeraStoreError(
            f"Invalid temporary record at {payload_path}: {error}."
        ) from error


def _parse_status(raw_status: object, payload_path: Path) -> LoadStatus:
    if isinstance(raw_status, str) and raw_status in LOAD_STATUSES:
        return cast(LoadStatus, raw_status)
    raise EphemeraStoreError(
        f"Invalid temporary record at {payload_path}: status must be one of "
        f"{', '.join(LOAD_STATUSES)}."
    )
