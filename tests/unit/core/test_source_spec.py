"""Unit tests for YAML source descriptor parsing."""

from __future__ import annotations

import pytest

from core.errors import EphemeraSourceSpecError
from core.filters import InclusionFilter
from core.source_spec import load_source_spec, source_from_payload, source_to_payload
from fixture_paths import source_fixture


def test_load_source_spec_parses_fixture() -> None:
    """Source file should parse fields, connection, ingestion, and filters."""
    spec = load_source_spec(source_fixture("sales.yaml"))
    source = spec.source

    assert (
        source.name == "sales"
        and source.engine_name == "sales"
        and source.source_type == "VOLATILITY"
        and [item.name for item in source.fields] == ["region", "amount"]
        and source.fields[1].role == "MEASURE"
        and source.fields[1].seq == 1
        and source.ingestion is not None
        and source.ingestion.expired_seconds == 600
        and spec.filters == (InclusionFilter(field="region", values=("eu", "us")),)
    )


def test_load_source_spec_rejects_unknown_version() -> None:
    """Only version 1 source files are accepted."""
    with pytest.raises(EphemeraSourceSpecError):
        load_source_spec(source_fixture("invalid_version.yaml"))


def test_load_source_spec_reports_missing_file(tmp_path) -> None:
    """Missing source files should raise a typed error."""
    with pytest.raises(EphemeraSourceSpecError):
        load_source_spec(str(tmp_path / "absent.yaml"))


def test_source_from_payload_requires_query_or_table() -> None:
    """Ingestion info without a query or table is rejected."""
    payload = {"name": "sales", "ingestion": {"expired_seconds": 60}}

    with pytest.raises(EphemeraSourceSpecError):
        source_from_payload(payload)


def test_source_from_payload_rejects_unknown_keys() -> None:
    """Unknown descriptor keys should fail fast."""
    with pytest.raises(EphemeraSourceSpecError):
        source_from_payload({"name": "sales", "owner": "finance"})


def test_source_payload_survives_catalog_round_trip() -> None:
    """Persisted payloads should rebuild an equal descriptor."""
    source = load_source_spec(source_fixture("sales.yaml")).source
    source.id = "ds-1"

    restored = source_from_payload(source_to_payload(source))

    assert restored == source
