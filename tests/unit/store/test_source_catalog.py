"""Unit tests for source descriptor persistence."""

from __future__ import annotations

import pytest

from core.errors import EphemeraStoreError
from core.types import ConnectionInfo, Field, LinkIngestionInfo, SourceDescriptor
from store.source_catalog import SourceCatalog


def test_save_assigns_id_to_new_source(tmp_path) -> None:
    """Sources without identity get a generated id and are persisted."""
    catalog = SourceCatalog(tmp_path)
    source = SourceDescriptor(
        name="sales",
        engine_name="sales",
        source_type="VOLATILITY",
        fields=[Field(name="region")],
        connection=ConnectionInfo(url="sqlite://"),
        ingestion=LinkIngestionInfo(table="sales"),
    )

    saved = catalog.save(source)

    assert (
        saved is source
        and source.id.startswith("ds-")
        and catalog.exists(source.id)
        and catalog.load(source.id) == source
    )


def test_save_keeps_existing_id(tmp_path) -> None:
    """Sources with identity are stored under that id."""
    catalog = SourceCatalog(tmp_path)
    source = SourceDescriptor(name="sales", engine_name="sales", id="ds-fixed")

    catalog.save(source)

    assert source.id == "ds-fixed" and catalog.exists("ds-fixed")


def test_load_missing_source_raises(tmp_path) -> None:
    """Unknown source ids raise a store error."""
    with pytest.raises(EphemeraStoreError):
        SourceCatalog(tmp_path).load("ds-missing")
