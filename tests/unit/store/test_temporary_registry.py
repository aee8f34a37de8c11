"""Unit tests for the temporary copy registry."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import EphemeraLoadConflictError, EphemeraStoreError
from store.temporary_registry import TemporaryRegistry, build_new_record


class _FakeEngine:
    def __init__(self) -> None:
        self.purged: list[str] = []

    def purge(self, engine_name: str) -> None:
        self.purged.append(engine_name)


def _record(record_id: str = "tmp-1", engine_name: str = "sales_ab12c", source_id: str = "ds-1"):
    return build_new_record(
        record_id=record_id,
        engine_name=engine_name,
        source_id=source_id,
        engine_query_token="q-1",
        expired_seconds=600,
        serialized_filters="[]",
        is_volatile=False,
        is_async=False,
    )


def test_lookup_returns_none_for_unknown_id(tmp_path) -> None:
    """Unknown ids are absent, not errors."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())

    assert registry.lookup("tmp-missing") is None


def test_upsert_is_create_or_replace(tmp_path) -> None:
    """Upserting twice under one id keeps a single, latest record."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    registry.upsert(_record())
    registry.upsert(replace(_record(), status="ENABLE"))

    stored = registry.lookup("tmp-1")

    assert (
        stored is not None
        and stored.status == "ENABLE"
        and stored.engine_query_token == "q-1"
        and len(registry.list_records()) == 1
    )


def test_reset_expiry_is_strictly_increasing(tmp_path) -> None:
    """Expiry never moves backwards, even when already far in the future."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    far_future = datetime.now(timezone.utc) + timedelta(days=30)
    record = replace(_record(), expires_at=far_future)

    refreshed = registry.reset_expiry(record)

    assert refreshed.expires_at > far_future


def test_reset_expiry_extends_by_lifetime(tmp_path) -> None:
    """Expiry is pushed to now plus the record lifetime."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    before = datetime.now(timezone.utc)

    refreshed = registry.reset_expiry(_record())

    assert refreshed.expires_at >= before + timedelta(seconds=600)


def test_list_by_engine_names_filters_records(tmp_path) -> None:
    """Only records whose engine name is requested are returned."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    registry.upsert(_record("tmp-1", "sales_aaaaa"))
    registry.upsert(_record("tmp-2", "sales_bbbbb"))

    records = registry.list_by_engine_names({"sales_bbbbb", "other_ccccc"})

    assert [record.id for record in records] == ["tmp-2"]


def test_delete_purges_engine_table(tmp_path) -> None:
    """Delete is a pure engine purge."""
    engine = _FakeEngine()
    registry = TemporaryRegistry(tmp_path, engine)
    registry.upsert(_record())

    registry.delete("sales_ab12c")

    assert engine.purged == ["sales_ab12c"] and registry.lookup("tmp-1") is not None


def test_remove_deletes_stored_record(tmp_path) -> None:
    """Remove should report whether a record existed."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    registry.upsert(_record())

    assert registry.remove("tmp-1") and not registry.remove("tmp-1")


def test_claim_rejects_concurrent_holder(tmp_path) -> None:
    """A second claim on the same id fails while the first is held."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())

    with registry.claim("tmp-1"):
        with pytest.raises(EphemeraLoadConflictError):
            with registry.claim("tmp-1"):
                pass
        held = registry.is_claimed("tmp-1")

    assert held and not registry.is_claimed("tmp-1")


def test_claim_is_released_on_error(tmp_path) -> None:
    """Claims are released when the holder fails."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())

    with pytest.raises(RuntimeError):
        with registry.claim("tmp-1"):
            raise RuntimeError("boom")

    assert not registry.is_claimed("tmp-1")


def test_lookup_rejects_corrupt_document(tmp_path) -> None:
    """Corrupt registry documents raise a store error."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())
    (tmp_path / "temporaries" / "tmp-1.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(EphemeraStoreError):
        registry.lookup("tmp-1")


def test_record_ids_cannot_escape_registry(tmp_path) -> None:
    """Path-like ids are rejected."""
    registry = TemporaryRegistry(tmp_path, _FakeEngine())

    with pytest.raises(EphemeraStoreError):
        registry.lookup("../outside")
