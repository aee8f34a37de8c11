"""Apache Lance backed query engine.

This module implements the ingestion and existence endpoints over a local
directory of Lance datasets, one per engine-side name. Asynchronous
submissions return a query token immediately and write on a background
thread, so callers must poll for existence like they would against a
remote engine.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
import shutil
import threading
from typing import Mapping
from uuid import uuid4

import lance
import pyarrow as pa
import pyarrow.csv as pa_csv
import pyarrow.fs as pa_fs

from core.constants import ENGINE_DATASET_SUFFIX, QUERY_TOKEN_KEY
from core.errors import EphemeraEngineError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


class LanceQueryEngine:
    """Local query engine storing each temporary copy as a Lance dataset."""

    def __init__(self, engine_root: Path) -> None:
        self._engine_root = engine_root.expanduser().resolve()
        self._engine_root.mkdir(parents=True, exist_ok=True)
        self._pending: dict[str, threading.Thread] = {}
        self._pending_lock = threading.Lock()

    def submit(self, spec_json: str, params: Mapping[str, object]) -> dict[str, object] | None:
        """Load the staged files named by an ingestion spec.

        Args:
            spec_json: Serialized ingestion spec.
            params: Submission parameters; ``async`` selects background loading.

        Returns:
            Result mapping carrying the query token.

        Raises:
            EphemeraEngineError: If the ingestion spec is invalid or a synchronous load fails.
        """
        spec = _parse_spec(spec_json)
        engine_name = str(spec["dataSource"])
        paths = [str(path) for path in spec["paths"]]
        query_id = uuid4().hex
        if bool(params.get("async", False)):
            worker = threading.Thread(
                target=self._load_in_background,
                args=(engine_name, paths, query_id),
                name=f"lance-load-{engine_name}",
                daemon=True,
            )
            with self._pending_lock:
                self._pending[query_id] = worker
            worker.start()
        else:
            self._write_dataset(engine_name, paths)
        _LOGGER.info(
            "engine_submit_accepted",
            engine_name=engine_name,
            query_id=query_id,
            is_async=bool(params.get("async", False)),
            temporary=bool(params.get("temporary", False)),
        )
        return {QUERY_TOKEN_KEY: query_id, "dataSource": engine_name}

    def exists_loaded(self, engine_name: str) -> bool:
        """Return whether a fully written dataset exists for ``engine_name``."""
        return self._dataset_path(engine_name).is_dir()

    def purge(self, engine_name: str) -> None:
        """Delete the dataset for ``engine_name`` if present."""
        dataset_path = self._dataset_path(engine_name)
        if not dataset_path.exists():
            return
        try:
            shutil.rmtree(dataset_path)
        except OSError as error:
            raise EphemeraEngineError(
                f"Failed to purge engine dataset {dataset_path}: {error}."
            ) from error

    def list_loaded_names(self) -> set[str]:
        """List engine-side names of every loaded dataset."""
        return {
            path.name.removesuffix(ENGINE_DATASET_SUFFIX)
            for path in self._engine_root.iterdir()
            if path.is_dir()
            and path.name.endswith(ENGINE_DATASET_SUFFIX)
            and not path.name.startswith(".")
        }

    def count_rows(self, engine_name: str) -> int:
        """Return the row count of one loaded dataset."""
        return lance.dataset(str(self._dataset_path(engine_name))).count_rows()

    def wait_for_pending(self, timeout: float | None = None) -> None:
        """Join background loads started by asynchronous submissions."""
        with self._pending_lock:
            workers = list(self._pending.values())
        for worker in workers:
            worker.join(timeout)

    def _load_in_background(self, engine_name: str, paths: list[str], query_id: str) -> None:
        try:
            self._write_dataset(engine_name, paths)
        except EphemeraEngineError as error:
            _LOGGER.error(
                "engine_async_load_failed",
                engine_name=engine_name,
                query_id=query_id,
                error=str(error),
            )
        finally:
            with self._pending_lock:
                self._pending.pop(query_id, None)

    def _write_dataset(self, engine_name: str, paths: list[str]) -> None:
        table = _read_staged_table(paths)
        dataset_path = self._dataset_path(engine_name)
        staging_path = self._engine_root / f".{engine_name}-{uuid4().hex[:8]}{ENGINE_DATASET_SUFFIX}"
        try:
            lance.write_dataset(table, str(staging_path), mode="overwrite")
            if dataset_path.exists():
                shutil.rmtree(dataset_path)
            os.replace(staging_path, dataset_path)
        except Exception as error:
            shutil.rmtree(staging_path, ignore_errors=True)
            raise EphemeraEngineError(
                f"Failed to write Lance dataset for '{engine_name}' at {dataset_path}: {error}. "
                "Validate lance/pyarrow compatibility and retry the load."
            ) from error
        _LOGGER.info("engine_dataset_written", engine_name=engine_name, rows=table.num_rows)

    def _dataset_path(self, engine_name: str) -> Path:
        return self._engine_root / f"{engine_name}{ENGINE_DATASET_SUFFIX}"


def _parse_spec(spec_json: str) -> dict[str, object]:
    try:
        spec = json.loads(spec_json)
    except json.JSONDecodeError as error:
        raise EphemeraEngineError(f"Rejected ingestion spec: {error.msg}.") from error
    if not isinstance(spec, dict) or not spec.get("dataSource"):
        raise EphemeraEngineError("Rejected ingestion spec: 'dataSource' is required.")
    paths = spec.get("paths")
    if not isinstance(paths, list) or not paths:
        raise EphemeraEngineError("Rejected ingestion spec: 'paths' must be a non-empty list.")
    return spec


def _read_staged_table(paths: list[str]) -> pa.Table:
    """Read and concatenate staged CSV files from local paths or URIs."""
    tables = []
    for path in paths:
        try:
            filesystem, fs_path = pa_fs.FileSystem.from_uri(path)
            with filesystem.open_input_stream(fs_path) as stream:
                tables.append(pa_csv.read_csv(stream))
        except (OSError, pa.ArrowException) as error:
            raise EphemeraEngineError(
                f"Failed to read staged file {path}: {error}."
            ) from error
    return pa.concat_tables(tables)
