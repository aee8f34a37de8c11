"""Python SDK for temporary copy operations.

This module exposes high-level APIs for loading sources into the query
engine as temporary copies, inspecting what is loaded, and purging
engine-side tables.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
import threading
from typing import Callable, Iterable

from core.config import EphemeraConfig
from core.constants import ENGINE_DIR_NAME
from core.filters import SourceFilter
from core.interfaces import ProgressReporter, QueryEngine, RemoteTransfer, StagingExtractor
from core.types import ProgressEvent, SourceDescriptor, TemporaryCopyRecord
from ingest.load_progress import (
    CompositeProgressReporter,
    LoggingProgressReporter,
    TopicProgressBroker,
    progress_topic,
)
from ingest.pipeline import LoadCollaborators, LoadRequest, TemporaryLoadRunner
from ingest.staging_extract import SqlStagingExtractor
from store.lance_engine import LanceQueryEngine
from store.remote_transfer import build_remote_transfer
from store.source_catalog import SourceCatalog
from store.temporary_registry import TemporaryRegistry


class EphemeraClient:
    """Primary SDK entry point for temporary copies."""

    def __init__(
        self,
        config: EphemeraConfig | None = None,
        engine: QueryEngine | None = None,
        extractor: StagingExtractor | None = None,
        transfer: RemoteTransfer | None = None,
        reporter: ProgressReporter | None = None,
    ) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
            engine: Query engine, defaults to Lance datasets under the data root.
            extractor: Source extractor, defaults to SQLAlchemy extraction.
            transfer: Staged file transfer, defaults to the configured destination.
            reporter: Extra progress sink alongside logging and topic subscribers.
        """
        self._config = config or EphemeraConfig.from_env()
        self._engine = engine or LanceQueryEngine(self._config.data_root / ENGINE_DIR_NAME)
        self._extractor = extractor or SqlStagingExtractor()
        self._transfer = transfer or build_remote_transfer(self._config)
        self._registry = TemporaryRegistry(self._config.data_root, self._engine)
        self._catalog = SourceCatalog(self._config.data_root)
        self._broker = TopicProgressBroker()
        reporters: list[ProgressReporter] = [LoggingProgressReporter(), self._broker]
        if reporter is not None:
            reporters.append(reporter)
        self._reporter = CompositeProgressReporter(reporters)
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    @property
    def config(self) -> EphemeraConfig:
        return self._config

    @property
    def engine(self) -> QueryEngine:
        return self._engine

    def load(
        self,
        source: SourceDescriptor,
        filters: Iterable[SourceFilter] = (),
        is_async: bool = False,
        request_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> TemporaryCopyRecord:
        """Load a source into the engine as a temporary copy.

        Args:
            source: Source descriptor.
            filters: Extraction predicates.
            is_async: Submit asynchronously and poll for completion.
            request_id: Stable id of the logical copy; generated when empty.
            cancel_event: Optional event that aborts waiting.

        Returns:
            Final record with status ENABLE or FAIL.

        Raises:
            EphemeraIngestionError: If the load cannot complete.
            EphemeraStoreError: If registry persistence fails.
        """
        runner = self.stream_load(source, filters, is_async, request_id, cancel_event)
        return runner.run(self._reporter)

    def stream_load(
        self,
        source: SourceDescriptor,
        filters: Iterable[SourceFilter] = (),
        is_async: bool = False,
        request_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> TemporaryLoadRunner:
        """Prepare a load without running it.

        Iterate ``runner.stream()`` to drive the load and observe its events
        directly, or call ``runner.run(reporter)``.
        """
        request = LoadRequest(
            source=source,
            filters=tuple(filters),
            is_async=is_async,
            request_id=request_id,
            cancel_event=cancel_event,
        )
        return TemporaryLoadRunner(request, self._collaborators(), self._config)

    def submit_load(
        self,
        source: SourceDescriptor,
        filters: Iterable[SourceFilter] = (),
        is_async: bool = False,
        request_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Future[TemporaryCopyRecord]:
        """Run a load on the client's worker pool.

        The request id is resolved before submission so callers can
        subscribe to its topic; read it from ``future.request_id``.
        """
        runner = self.stream_load(source, filters, is_async, request_id, cancel_event)
        future = self._worker_pool().submit(runner.run, self._reporter)
        setattr(future, "request_id", runner.request_id)
        return future

    def subscribe(
        self,
        request_id: str,
        callback: Callable[[ProgressEvent], None],
    ) -> Callable[[], None]:
        """Receive progress events for one request id.

        Returns:
            Function that removes the subscription.
        """
        return self._broker.subscribe(progress_topic(request_id), callback)

    def delete(self, engine_name: str) -> None:
        """Purge one engine-side table."""
        self._registry.delete(engine_name)

    def list_loaded_names(self) -> list[str]:
        """List engine-side names currently loaded, sorted."""
        return sorted(self._engine.list_loaded_names())

    def list_active_temporaries_for(self, source_id: str) -> list[TemporaryCopyRecord]:
        """Return records of ``source_id`` whose engine table is currently loaded."""
        loaded = self._engine.list_loaded_names()
        return [
            record
            for record in self._registry.list_by_engine_names(loaded)
            if record.source_id == source_id
        ]

    def exists(self, engine_name: str) -> bool:
        return self._engine.exists_loaded(engine_name)

    def get_temporary(self, record_id: str) -> TemporaryCopyRecord | None:
        """Load one temporary copy record by id."""
        return self._registry.lookup(record_id)

    def list_temporaries(self) -> list[TemporaryCopyRecord]:
        return self._registry.list_records()

    def with_data_root(self, data_root: str) -> "EphemeraClient":
        """Clone the client with a different local data root.

        The clone uses default back-ends rooted at the new path.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        return EphemeraClient(replace(self._config, data_root=resolved_root))

    def close(self) -> None:
        """Wait for submitted loads and release the worker pool."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "EphemeraClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _collaborators(self) -> LoadCollaborators:
        return LoadCollaborators(
            extractor=self._extractor,
            transfer=self._transfer,
            engine=self._engine,
            registry=self._registry,
            source_catalog=self._catalog,
        )

    def _worker_pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.load_workers,
                    thread_name_prefix="ephemera-load",
                )
            return self._executor
