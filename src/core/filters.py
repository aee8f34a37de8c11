"""Extraction filter predicates.

Filters are opaque to the load pipeline: they are passed to the extractor
and snapshotted as JSON on the temporary copy record.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Sequence, Union


@dataclass(frozen=True)
class InclusionFilter:
    """Keep rows whose field value is one of ``values``."""

    field: str
    values: tuple[object, ...]


@dataclass(frozen=True)
class BoundFilter:
    """Keep rows whose field value lies within optional inclusive bounds."""

    field: str
    min_value: object | None = None
    max_value: object | None = None


SourceFilter = Union[InclusionFilter, BoundFilter]


def filter_to_payload(source_filter: SourceFilter) -> dict[str, object]:
    """Serialize one filter to a JSON-safe dictionary."""
    if isinstance(source_filter, InclusionFilter):
        return {
            "type": "include",
            "field": source_filter.field,
            "values": list(source_filter.values),
        }
    return {
        "type": "bound",
        "field": source_filter.field,
        "min": source_filter.min_value,
        "max": source_filter.max_value,
    }


def filter_from_payload(payload: dict[str, object]) -> SourceFilter:
    """Deserialize one filter payload.

    Raises:
        ValueError: If the payload type tag or field is invalid.
    """
    filter_type = payload.get("type")
    field_name = payload.get("field")
    if not isinstance(field_name, str) or not field_name:
        raise ValueError(f"Filter payload requires a non-empty 'field': {payload!r}.")
    if filter_type == "include":
        raw_values = payload.get("values")
        if not isinstance(raw_values, list):
            raise ValueError(f"Inclusion filter on {field_name!r} requires a 'values' list.")
        return InclusionFilter(field=field_name, values=tuple(raw_values))
    if filter_type == "bound":
        return BoundFilter(
            field=field_name,
            min_value=payload.get("min"),
            max_value=payload.get("max"),
        )
    raise ValueError(f"Unsupported filter type {filter_type!r}. Use 'include' or 'bound'.")


def serialize_filters(filters: Sequence[SourceFilter]) -> str:
    """Serialize an ordered filter set for persistence."""
    return json.dumps([filter_to_payload(item) for item in filters], sort_keys=True)


def deserialize_filters(raw_filters: str) -> list[SourceFilter]:
    """Restore an ordered filter set from its persisted JSON form."""
    payload = json.loads(raw_filters) if raw_filters else []
    if not isinstance(payload, list):
        raise ValueError("Serialized filters must be a JSON list.")
    return [filter_from_payload(item) for item in payload]
