"""Unit tests for the temporary copy SDK client."""

from __future__ import annotations

import json

from core.config import EphemeraConfig
from core.types import ConnectionInfo, Field, LinkIngestionInfo, SourceDescriptor
from store.temporary_sdk import EphemeraClient


class _FakeExtractor:
    def __init__(self) -> None:
        self.calls = 0

    def extract_to_staging(self, connection, ingestion, output_dir, name_prefix, fields, filters, max_rows):
        self.calls += 1
        output_dir.mkdir(parents=True, exist_ok=True)
        staged_path = output_dir / f"{name_prefix}.csv"
        staged_path.write_text("region\neu\nus\n", encoding="utf-8")
        return [staged_path]


class _FakeEngine:
    def __init__(self) -> None:
        self.loaded: set[str] = set()

    def submit(self, spec_json, params):
        engine_name = json.loads(spec_json)["dataSource"]
        self.loaded.add(engine_name)
        return {"queryId": f"q-{engine_name}"}

    def exists_loaded(self, engine_name):
        return engine_name in self.loaded

    def purge(self, engine_name):
        self.loaded.discard(engine_name)

    def list_loaded_names(self):
        return set(self.loaded)


def _client(tmp_path) -> EphemeraClient:
    config = EphemeraConfig(data_root=tmp_path, async_start_delay_seconds=0)
    return EphemeraClient(config, engine=_FakeEngine(), extractor=_FakeExtractor())


def _source(source_id: str = "ds-sales") -> SourceDescriptor:
    return SourceDescriptor(
        id=source_id,
        name="sales",
        engine_name="sales",
        fields=[Field(name="region")],
        connection=ConnectionInfo(url="sqlite://"),
        ingestion=LinkIngestionInfo(table="sales"),
    )


def test_load_then_inspect_loaded_copies(tmp_path) -> None:
    """Loaded copies are visible by name, existence, and record id."""
    client = _client(tmp_path)

    record = client.load(_source())

    assert (
        client.exists(record.engine_name)
        and client.list_loaded_names() == [record.engine_name]
        and client.get_temporary(record.id) == record
    )


def test_list_active_temporaries_for_intersects_loaded_names(tmp_path) -> None:
    """Only loaded copies of the requested source are listed."""
    client = _client(tmp_path)
    kept = client.load(_source(), request_id="tmp-kept")
    purged = client.load(_source(), request_id="tmp-purged")
    client.load(_source("ds-other"), request_id="tmp-other")
    client.delete(purged.engine_name)

    active = client.list_active_temporaries_for("ds-sales")

    assert [record.id for record in active] == [kept.id]


def test_delete_only_purges_engine_table(tmp_path) -> None:
    """Deleting leaves the registry record in place."""
    client = _client(tmp_path)
    record = client.load(_source())

    client.delete(record.engine_name)

    assert not client.exists(record.engine_name) and client.get_temporary(record.id) is not None


def test_subscribe_receives_load_progress(tmp_path) -> None:
    """Subscribers to a request id see its progress events."""
    client = _client(tmp_path)
    received = []
    client.subscribe("tmp-watched", received.append)

    client.load(_source(), request_id="tmp-watched")

    assert [event.percent for event in received] == [0, 5, 10, 100]


def test_submit_load_runs_on_worker_pool(tmp_path) -> None:
    """Background loads resolve to final records."""
    with _client(tmp_path) as client:
        futures = [client.submit_load(_source(), request_id=f"tmp-{index}") for index in range(3)]
        records = [future.result(timeout=30) for future in futures]

    assert {record.status for record in records} == {"ENABLE"} and [
        getattr(future, "request_id") for future in futures
    ] == ["tmp-0", "tmp-1", "tmp-2"]


def test_stream_load_exposes_events(tmp_path) -> None:
    """Callers can drive a load through its event stream."""
    client = _client(tmp_path)
    runner = client.stream_load(_source())

    codes = [event.code for event in runner.stream()]

    assert codes[-1] == "COMPLETE_LOAD_TEMP_DATASOURCE" and runner.record is not None


def test_with_data_root_returns_new_client(tmp_path) -> None:
    """Cloned clients point at the new root."""
    client = _client(tmp_path)

    clone = client.with_data_root(str(tmp_path / "other"))

    assert clone.config.data_root == (tmp_path / "other").resolve()
