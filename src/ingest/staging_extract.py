"""SQL source extraction into staging files.

This module runs a source query through SQLAlchemy Core, applies the
request filters, and streams at most ``max_rows`` rows into a headered
CSV file that the engine can ingest.
"""

from __future__ import annotations

import csv
from datetime import date, datetime
from pathlib import Path
from typing import Any, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from core.constants import EXTRACT_FETCH_SIZE, STAGING_FILE_SUFFIX
from core.errors import EphemeraExtractionError
from core.filters import BoundFilter, InclusionFilter, SourceFilter
from core.logging_config import get_logger
from core.types import ConnectionInfo, Field, LinkIngestionInfo

_LOGGER = get_logger(__name__)


class SqlStagingExtractor:
    """Extract rows from any SQLAlchemy-reachable database."""

    def __init__(self, fetch_size: int = EXTRACT_FETCH_SIZE) -> None:
        self._fetch_size = fetch_size

    def extract_to_staging(
        self,
        connection: ConnectionInfo,
        ingestion: LinkIngestionInfo,
        output_dir: Path,
        name_prefix: str,
        fields: Sequence[Field],
        filters: Sequence[SourceFilter],
        max_rows: int,
    ) -> list[Path]:
        """Write matching source rows to one staging CSV.

        Args:
            connection: Source connection descriptor.
            ingestion: Source query or table.
            output_dir: Directory receiving staging files.
            name_prefix: File name prefix, usually the engine-side name.
            fields: Columns to select, in output order.
            filters: Predicates applied in the source query.
            max_rows: Hard cap on written rows.

        Returns:
            Staging file paths; empty when the source produced no rows.

        Raises:
            EphemeraExtractionError: If the connection or query fails.
        """
        if not fields:
            raise EphemeraExtractionError(
                "Cannot extract a source without fields. Declare at least one field."
            )
        statement = build_select(ingestion, fields, filters, max_rows)
        output_dir.mkdir(parents=True, exist_ok=True)
        staging_path = output_dir / f"{name_prefix}{STAGING_FILE_SUFFIX}"
        engine = sa.create_engine(connection.url)
        try:
            row_count = self._write_rows(engine, statement, staging_path, fields, max_rows)
        except SQLAlchemyError as error:
            staging_path.unlink(missing_ok=True)
            raise EphemeraExtractionError(
                f"Failed to extract rows from {engine.url.render_as_string(hide_password=True)}: "
                f"{error}. Check the source query and connection."
            ) from error
        finally:
            engine.dispose()
        _LOGGER.info(
            "staging_extract_completed",
            staging_path=str(staging_path),
            row_count=row_count,
            max_rows=max_rows,
        )
        if row_count == 0:
            staging_path.unlink(missing_ok=True)
            return []
        return [staging_path]

    def _write_rows(
        self,
        engine: sa.Engine,
        statement: sa.Select,
        staging_path: Path,
        fields: Sequence[Field],
        max_rows: int,
    ) -> int:
        row_count = 0
        with engine.connect() as db_connection, staging_path.open(
            "w", encoding="utf-8", newline=""
        ) as handle:
            writer = csv.writer(handle)
            writer.writerow([item.name for item in fields])
            result = db_connection.execute(statement)
            while row_count < max_rows:
                rows = result.fetchmany(min(self._fetch_size, max_rows - row_count))
                if not rows:
                    break
                for row in rows:
                    writer.writerow([_csv_value(value) for value in row])
                row_count += len(rows)
            result.close()
        return row_count


def build_select(
    ingestion: LinkIngestionInfo,
    fields: Sequence[Field],
    filters: Sequence[SourceFilter],
    max_rows: int,
) -> sa.Select:
    """Build the capped, filtered select over the source query or table.

    Raises:
        EphemeraExtractionError: If no source is defined or a filter names an unknown field.
    """
    columns = [sa.column(item.name) for item in fields]
    if ingestion.query:
        source = sa.text(ingestion.query).columns(*columns).subquery("source_rows")
    elif ingestion.table:
        source = sa.table(ingestion.table, *columns)
    else:
        raise EphemeraExtractionError(
            "Source ingestion defines neither a query nor a table. Add one and retry."
        )
    statement = sa.select(*[source.c[item.name] for item in fields])
    for source_filter in filters:
        statement = statement.where(_filter_clause(source, source_filter))
    return statement.limit(max_rows)


def _filter_clause(source: Any, source_filter: SourceFilter) -> Any:
    if source_filter.field not in source.c:
        raise EphemeraExtractionError(
            f"Filter references unknown field '{source_filter.field}'. "
            "Filter only on declared source fields."
        )
    column = source.c[source_filter.field]
    if isinstance(source_filter, InclusionFilter):
        return column.in_(list(source_filter.values))
    if isinstance(source_filter, BoundFilter):
        clauses = []
        if source_filter.min_value is not None:
            clauses.append(column >= source_filter.min_value)
        if source_filter.max_value is not None:
            clauses.append(column <= source_filter.max_value)
        return sa.and_(sa.true(), *clauses)
    raise EphemeraExtractionError(f"Unsupported filter {source_filter!r}.")


def _csv_value(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value
