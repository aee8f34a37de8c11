"""Integration tests for the temporary load workflow."""

from __future__ import annotations

from dataclasses import replace

import sqlalchemy as sa

from core.config import EphemeraConfig
from core.filters import BoundFilter
from core.types import ConnectionInfo, Field, LinkIngestionInfo, SourceDescriptor
from store.lance_engine import LanceQueryEngine
from store.temporary_sdk import EphemeraClient


def _sales_source(tmp_path, row_count: int) -> SourceDescriptor:
    database_url = f"sqlite:///{tmp_path / 'sales.db'}"
    engine = sa.create_engine(database_url)
    with engine.begin() as connection:
        connection.execute(sa.text("CREATE TABLE sales (region TEXT, amount REAL)"))
        for index in range(row_count):
            connection.execute(
                sa.text("INSERT INTO sales VALUES (:region, :amount)"),
                {"region": "eu", "amount": float(index)},
            )
    engine.dispose()
    return SourceDescriptor(
        name="sales",
        engine_name="sales",
        source_type="VOLATILITY",
        fields=[Field(name="region"), Field(name="amount", data_type="FLOAT", role="MEASURE")],
        connection=ConnectionInfo(url=database_url),
        ingestion=LinkIngestionInfo(query="SELECT region, amount FROM sales"),
    )


def test_sync_load_materializes_and_reuses_copy(tmp_path) -> None:
    """End-to-end flow should extract, load, and then reuse the copy."""
    config = replace(EphemeraConfig.from_env(), data_root=tmp_path / "data", max_row=4)
    client = EphemeraClient(config)
    source = _sales_source(tmp_path, row_count=6)

    first = client.load(source)
    second = client.load(source, request_id=first.id)
    engine = client.engine

    assert (
        isinstance(engine, LanceQueryEngine)
        and first.status == "ENABLE"
        and first.is_volatile
        and engine.count_rows(first.engine_name) == 4
        and second.engine_name == first.engine_name
        and second.engine_query_token == first.engine_query_token
        and second.expires_at > first.expires_at
        and len(source.fields) == 3
    )


def test_async_load_polls_background_engine(tmp_path) -> None:
    """Asynchronous loads complete once the background write lands."""
    config = replace(
        EphemeraConfig.from_env(),
        data_root=tmp_path / "data",
        async_start_delay_seconds=0,
        load_timeout_seconds=50,
    )
    client = EphemeraClient(config)
    source = _sales_source(tmp_path, row_count=3)

    record = client.load(source, filters=[BoundFilter(field="amount", max_value=1.0)], is_async=True)

    assert (
        record.status == "ENABLE"
        and client.list_loaded_names() == [record.engine_name]
        and client.list_active_temporaries_for(source.id)[0].id == record.id
    )
