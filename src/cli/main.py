"""Ephemera CLI entry points.
This module exposes commands for loading and inspecting temporary copies.
It maps argparse commands onto SDK calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from core.config import EphemeraConfig
from core.errors import EphemeraSourceSpecError
from core.filters import SourceFilter, deserialize_filters
from core.source_spec import load_source_spec
from core.types import TemporaryCopyRecord
from store.temporary_sdk import EphemeraClient


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="ephemera", description="Ephemera temporary copy CLI")
    parser.add_argument("--data-root", help="Override EPHEMERA_DATA_ROOT for this command")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_load_command(subparsers)
    _add_delete_command(subparsers)
    _add_loaded_command(subparsers)
    _add_temporaries_command(subparsers)
    _add_exists_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Ephemera CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    client = _build_client(args.data_root)
    if args.command == "load":
        return _run_load_command(client, args)
    if args.command == "delete":
        return _run_delete_command(client, args)
    if args.command == "loaded":
        return _run_loaded_command(client)
    if args.command == "temporaries":
        return _run_temporaries_command(client, args)
    if args.command == "exists":
        return _run_exists_command(client, args)
    parser.error(f"Unsupported command: {args.command}")
    return 2


def _build_client(data_root: str | None) -> EphemeraClient:
    """Build SDK client with optional data-root override."""
    config = EphemeraConfig.from_env()
    if data_root:
        config = replace(config, data_root=Path(data_root).expanduser().resolve())
    return EphemeraClient(config)


def _run_load_command(client: EphemeraClient, args: argparse.Namespace) -> int:
    """Handle load command.

    Filters given on the command line replace those in the source file.
    """
    source_spec = load_source_spec(args.source_file)
    filters = source_spec.filters
    if args.filters:
        filters = tuple(_parse_filters_argument(args.filters))
    record = client.load(
        source_spec.source,
        filters=filters,
        is_async=args.is_async,
        request_id=args.request_id,
    )
    _print_record(record)
    return 0 if record.status == "ENABLE" else 1


def _run_delete_command(client: EphemeraClient, args: argparse.Namespace) -> int:
    client.delete(args.engine_name)
    print(f"deleted={args.engine_name}")
    return 0


def _run_loaded_command(client: EphemeraClient) -> int:
    for engine_name in client.list_loaded_names():
        print(engine_name)
    return 0


def _run_temporaries_command(client: EphemeraClient, args: argparse.Namespace) -> int:
    """Handle temporaries command.

    Without ``--source-id`` every stored record is listed.
    """
    if args.source_id:
        records = client.list_active_temporaries_for(args.source_id)
    else:
        records = client.list_temporaries()
    for record in records:
        print(
            f"{record.id}\t"
            f"{record.engine_name}\t"
            f"{record.status}\t"
            f"{record.expires_at.isoformat()}"
        )
    return 0


def _run_exists_command(client: EphemeraClient, args: argparse.Namespace) -> int:
    loaded = client.exists(args.engine_name)
    print("true" if loaded else "false")
    return 0 if loaded else 1


def _parse_filters_argument(raw_filters: str) -> list[SourceFilter]:
    try:
        return deserialize_filters(raw_filters)
    except ValueError as error:
        raise EphemeraSourceSpecError(
            f"Invalid --filters value: {error}. "
            'Pass a JSON list such as [{"type": "include", "field": "region", "values": ["eu"]}].'
        ) from error


def _print_record(record: TemporaryCopyRecord) -> None:
    print(f"id={record.id}")
    print(f"engine_name={record.engine_name}")
    print(f"status={record.status}")
    print(f"expires_at={record.expires_at.isoformat()}")
    print(f"query_id={record.engine_query_token or '-'}")


def _add_load_command(subparsers: Any) -> None:
    """Register load subcommand."""
    parser = subparsers.add_parser("load", help="Load a source as a temporary copy")
    parser.add_argument("source_file", help="Path to YAML source descriptor file")
    parser.add_argument(
        "--async",
        dest="is_async",
        action="store_true",
        help="Submit asynchronously and poll for completion",
    )
    parser.add_argument("--request-id", help="Stable id of the temporary copy to reuse")
    parser.add_argument("--filters", help="JSON list of filters, replacing file filters")


def _add_delete_command(subparsers: Any) -> None:
    """Register delete subcommand."""
    parser = subparsers.add_parser("delete", help="Purge an engine-side table")
    parser.add_argument("engine_name", help="Engine-side table name")


def _add_loaded_command(subparsers: Any) -> None:
    """Register loaded subcommand."""
    subparsers.add_parser("loaded", help="List engine-side tables currently loaded")


def _add_temporaries_command(subparsers: Any) -> None:
    """Register temporaries subcommand."""
    parser = subparsers.add_parser("temporaries", help="List temporary copy records")
    parser.add_argument("--source-id", help="Only list loaded copies of this source")


def _add_exists_command(subparsers: Any) -> None:
    """Register exists subcommand."""
    parser = subparsers.add_parser("exists", help="Check whether an engine-side table is loaded")
    parser.add_argument("engine_name", help="Engine-side table name")
