"""Time column normalization for temporary loads.

The engine requires exactly one TIMESTAMP-role column. Sources that lack
one either get their first TIMESTAMP-typed field promoted, or get a
synthesized ``current_datetime`` column appended to the staged file.
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path

from core.constants import FIELD_NAME_CURRENT_TIMESTAMP, TIMESTAMPED_FILE_SUFFIX
from core.errors import EphemeraExtractionError
from core.types import Field, SourceDescriptor


def normalize_time_column(
    source: SourceDescriptor,
    staging_path: Path,
    now: datetime | None = None,
) -> Path:
    """Ensure the source has one TIMESTAMP-role field.

    Mutates ``source.fields`` in place. Sources that already hold a
    TIMESTAMP-role field are left unchanged, except that a field synthesized
    by an earlier load is stamped onto the staged file again.

    Args:
        source: Source descriptor to normalize.
        staging_path: Staged CSV for the source rows.
        now: Load time stamped onto synthesized columns, defaults to current UTC time.

    Returns:
        Path of the staged file to load, rewritten when a column was appended.
    """
    if has_synthesized_time_field(source):
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        return append_timestamp_column(staging_path, stamp, FIELD_NAME_CURRENT_TIMESTAMP)
    if source.has_timestamp_field():
        return staging_path
    time_fields = [item for item in source.fields if item.logical_type == "TIMESTAMP"]
    if not time_fields:
        source.add_field(
            Field(
                name=FIELD_NAME_CURRENT_TIMESTAMP,
                data_type="TIMESTAMP",
                logical_type="TIMESTAMP",
                role="TIMESTAMP",
            )
        )
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        return append_timestamp_column(staging_path, stamp, FIELD_NAME_CURRENT_TIMESTAMP)
    for index, item in enumerate(time_fields):
        item.role = "TIMESTAMP" if index == 0 else "DIMENSION"
    return staging_path


def has_synthesized_time_field(source: SourceDescriptor) -> bool:
    """Return whether an earlier load appended the ``current_datetime`` field."""
    return any(
        item.name == FIELD_NAME_CURRENT_TIMESTAMP and item.role == "TIMESTAMP"
        for item in source.fields
    )


def extractable_fields(source: SourceDescriptor) -> list[Field]:
    """Return the fields read from the source, without the synthesized time field."""
    if not has_synthesized_time_field(source):
        return list(source.fields)
    return [item for item in source.fields if item.name != FIELD_NAME_CURRENT_TIMESTAMP]


def append_timestamp_column(staging_path: Path, stamp: str, column_name: str) -> Path:
    """Write a copy of a staged CSV with one constant trailing column.

    Args:
        staging_path: Source CSV with a header row.
        stamp: Value written on every data row.
        column_name: Header of the appended column.

    Returns:
        Path of the rewritten file.

    Raises:
        EphemeraExtractionError: If the staged file cannot be rewritten.
    """
    output_path = staging_path.with_name(
        staging_path.name.removesuffix(staging_path.suffix) + TIMESTAMPED_FILE_SUFFIX
    )
    try:
        with staging_path.open("r", encoding="utf-8", newline="") as source_handle, output_path.open(
            "w", encoding="utf-8", newline=""
        ) as output_handle:
            reader = csv.reader(source_handle)
            writer = csv.writer(output_handle)
            header = next(reader, None)
            if header is None:
                raise EphemeraExtractionError(
                    f"Staged file {staging_path} is empty; expected a header row."
                )
            writer.writerow([*header, column_name])
            for row in reader:
                writer.writerow([*row, stamp])
    except OSError as error:
        raise EphemeraExtractionError(
            f"Failed to append timestamp column to {staging_path}: {error}."
        ) from error
    return output_path
