"""Temporary load orchestration.

This module drives one temporary load end to end: dedup against the
registry, extraction, time normalization, transfer, engine submission,
and completion confirmation. The pipeline is exposed as a finite event
stream so observers can follow it directly or through a reporter.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
import random
import string
import threading
import time
from pathlib import Path
from typing import Generator, Sequence
from uuid import uuid4

from core.config import EphemeraConfig
from core.constants import (
    ENGINE_NAME_SUFFIX_LENGTH,
    FIELD_NAME_CURRENT_TIMESTAMP,
    QUERY_TOKEN_KEY,
    STAGING_DIR_NAME,
    TEMPORARY_ID_PREFIX,
)
from core.errors import (
    EphemeraExtractionError,
    EphemeraIngestionError,
    EphemeraLoadCancelledError,
    EphemeraPreconditionError,
    EphemeraSubmissionError,
    EphemeraTransferError,
)
from core.filters import SourceFilter, serialize_filters
from core.interfaces import ProgressReporter, QueryEngine, RemoteTransfer, StagingExtractor
from core.logging_config import get_logger
from core.types import (
    ConnectionInfo,
    LinkIngestionInfo,
    LoadStatus,
    ProgressEvent,
    SourceDescriptor,
    TemporaryCopyRecord,
)
from ingest.completion_poller import CompletionPoller, Sleeper, build_poll_plan, suspend
from ingest.load_progress import (
    CANCEL_LOAD,
    COMPLETE_GET_DATA,
    COMPLETE_LOAD,
    FAIL_TO_LOAD_LINK,
    FAIL_TO_SUBMIT,
    PROGRESS_GET_DATA,
    START_LOAD,
    TIMEOUT_LOAD,
    progress_topic,
    publish_quietly,
)
from ingest.time_normalization import (
    append_timestamp_column,
    extractable_fields,
    normalize_time_column,
)
from store.ingestion_spec import build_ingestion_spec, render_ingestion_spec
from store.source_catalog import SourceCatalog
from store.temporary_registry import TemporaryRegistry, build_new_record

_LOGGER = get_logger(__name__)

LoadStream = Generator[ProgressEvent, None, TemporaryCopyRecord]


@dataclass(frozen=True)
class LoadRequest:
    """One request to materialize a temporary copy.

    Attributes:
        source: Source descriptor; may be mutated by time normalization.
        filters: Ordered extraction predicates.
        is_async: Submit asynchronously and poll for completion.
        request_id: Caller-supplied record id; generated when empty.
        cancel_event: Optional event that aborts the start delay and polling.
    """

    source: SourceDescriptor
    filters: tuple[SourceFilter, ...] = ()
    is_async: bool = False
    request_id: str | None = None
    cancel_event: threading.Event | None = None


@dataclass(frozen=True)
class LoadCollaborators:
    """Back-ends used by the load pipeline."""

    extractor: StagingExtractor
    transfer: RemoteTransfer
    engine: QueryEngine
    registry: TemporaryRegistry
    source_catalog: SourceCatalog


class TemporaryLoadRunner:
    """Single-use runner for one temporary load."""

    def __init__(
        self,
        request: LoadRequest,
        collaborators: LoadCollaborators,
        config: EphemeraConfig,
        sleep: Sleeper = time.sleep,
    ) -> None:
        self._request = request
        self._collaborators = collaborators
        self._config = config
        self._sleep = sleep
        self._request_id = request.request_id or _generate_request_id()
        self._record: TemporaryCopyRecord | None = None
        self._started = False

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def topic(self) -> str:
        return progress_topic(self._request_id)

    @property
    def record(self) -> TemporaryCopyRecord | None:
        """Final record once the stream has been exhausted."""
        return self._record

    def stream(self) -> LoadStream:
        """Return the load as a lazy, finite, single-use event stream.

        The generator's return value is the final record.

        Raises:
            EphemeraIngestionError: If the runner was already streamed.
        """
        if self._started:
            raise EphemeraIngestionError(
                f"Temporary load '{self._request_id}' has already run. Create a new runner."
            )
        self._started = True
        return self._run()

    def run(self, reporter: ProgressReporter | None = None) -> TemporaryCopyRecord:
        """Execute the load, publishing every event to ``reporter``."""
        events = self.stream()
        while True:
            try:
                event = next(events)
            except StopIteration as stop:
                return stop.value
            if reporter is not None:
                publish_quietly(reporter, self.topic, event)

    def _run(self) -> LoadStream:
        request = self._request
        source = request.source
        connection, ingestion = _check_preconditions(source)
        if request.is_async:
            if suspend(
                self._config.async_start_delay_seconds, request.cancel_event, self._sleep
            ):
                yield ProgressEvent(percent=-1, code=CANCEL_LOAD)
                raise EphemeraLoadCancelledError(
                    f"Temporary load '{self._request_id}' was cancelled before it started."
                )
        is_volatile = self._persist_if_volatile(source)
        registry = self._collaborators.registry
        cached = self._reuse_enabled(registry.lookup(self._request_id))
        if cached is not None:
            yield ProgressEvent(percent=100, code=COMPLETE_LOAD)
            return cached
        with registry.claim(self._request_id):
            existing = registry.lookup(self._request_id)
            cached = self._reuse_enabled(existing)
            if cached is not None:
                yield ProgressEvent(percent=100, code=COMPLETE_LOAD)
                return cached
            return (yield from self._load(source, connection, ingestion, existing, is_volatile))

    def _load(
        self,
        source: SourceDescriptor,
        connection: ConnectionInfo,
        ingestion: LinkIngestionInfo,
        existing: TemporaryCopyRecord | None,
        is_volatile: bool,
    ) -> LoadStream:
        request = self._request
        registry = self._collaborators.registry
        engine_name = existing.engine_name if existing else _generate_engine_name(source)
        _LOGGER.info(
            "temporary_load_started",
            request_id=self._request_id,
            engine_name=engine_name,
            source_id=source.id,
            is_async=request.is_async,
        )
        yield ProgressEvent(percent=0, code=START_LOAD)
        yield ProgressEvent(percent=5, code=PROGRESS_GET_DATA)
        try:
            staged_paths = self._extract(source, connection, ingestion, engine_name)
            staged_paths = _normalize_staged_files(source, staged_paths)
        except EphemeraExtractionError:
            yield ProgressEvent(percent=-1, code=FAIL_TO_LOAD_LINK)
            raise
        try:
            remote_paths = self._transfer(staged_paths)
        except EphemeraTransferError:
            yield ProgressEvent(percent=-1, code=FAIL_TO_LOAD_LINK)
            raise
        yield ProgressEvent(percent=10, code=COMPLETE_GET_DATA)
        try:
            query_token = self._submit(source, engine_name, remote_paths)
        except EphemeraSubmissionError:
            yield ProgressEvent(percent=-1, code=FAIL_TO_SUBMIT)
            raise
        record = self._register(
            existing, engine_name, source, ingestion, query_token, is_volatile
        )
        status, final_event = yield from self._resolve_completion(engine_name)
        record = replace(record, status=status)
        if status == "ENABLE":
            record = registry.reset_expiry(record)
        record = registry.upsert(record)
        self._record = record
        _LOGGER.info(
            "temporary_load_completed",
            request_id=self._request_id,
            engine_name=engine_name,
            status=status,
        )
        yield final_event
        return record

    def _persist_if_volatile(self, source: SourceDescriptor) -> bool:
        if source.id or source.source_type != "VOLATILITY":
            return False
        self._collaborators.source_catalog.save(source)
        _LOGGER.info("volatile_source_persisted", source_id=source.id, name=source.name)
        return True

    def _reuse_enabled(self, record: TemporaryCopyRecord | None) -> TemporaryCopyRecord | None:
        if record is None or record.status != "ENABLE":
            return None
        registry = self._collaborators.registry
        refreshed = registry.upsert(registry.reset_expiry(record))
        self._record = refreshed
        _LOGGER.info(
            "temporary_load_reused",
            request_id=self._request_id,
            engine_name=refreshed.engine_name,
            expires_at=refreshed.expires_at.isoformat(),
        )
        return refreshed

    def _extract(
        self,
        source: SourceDescriptor,
        connection: ConnectionInfo,
        ingestion: LinkIngestionInfo,
        engine_name: str,
    ) -> list[Path]:
        try:
            staged_paths = self._collaborators.extractor.extract_to_staging(
                connection,
                ingestion,
                self._config.data_root / STAGING_DIR_NAME,
                engine_name,
                extractable_fields(source),
                list(self._request.filters),
                self._config.max_row,
            )
        except EphemeraExtractionError:
            raise
        except Exception as error:
            raise EphemeraExtractionError(
                f"Failed to create staging file for '{engine_name}': {error}"
            ) from error
        if not staged_paths:
            raise EphemeraExtractionError(
                f"Failed to create staging file for '{engine_name}': source returned no rows."
            )
        return list(staged_paths)

    def _transfer(self, staged_paths: Sequence[Path]) -> list[str]:
        remote_paths: list[str] = []
        for staged_path in staged_paths:
            remote_paths.extend(self._collaborators.transfer.put_remote(staged_path))
        _LOGGER.debug("staged_files_transferred", remote_paths=remote_paths)
        return remote_paths

    def _submit(self, source: SourceDescriptor, engine_name: str, remote_paths: list[str]) -> str:
        spec_json = render_ingestion_spec(build_ingestion_spec(source, engine_name, remote_paths))
        params = {"async": self._request.is_async, "temporary": False}
        _LOGGER.info(
            "engine_submit_started",
            engine_name=engine_name,
            is_async=self._request.is_async,
            spec=spec_json,
        )
        try:
            result = self._collaborators.engine.submit(spec_json, params)
        except Exception as error:
            raise EphemeraSubmissionError(
                f"Engine rejected temporary load '{engine_name}': {error}"
            ) from error
        if not result:
            raise EphemeraSubmissionError(
                f"Engine returned an empty result for temporary load '{engine_name}'."
            )
        query_token = result.get(QUERY_TOKEN_KEY)
        _LOGGER.info("engine_submit_completed", engine_name=engine_name, query_id=query_token)
        return str(query_token) if query_token is not None else ""

    def _register(
        self,
        existing: TemporaryCopyRecord | None,
        engine_name: str,
        source: SourceDescriptor,
        ingestion: LinkIngestionInfo,
        query_token: str,
        is_volatile: bool,
    ) -> TemporaryCopyRecord:
        if existing is None:
            record = build_new_record(
                record_id=self._request_id,
                engine_name=engine_name,
                source_id=source.id,
                engine_query_token=query_token or None,
                expired_seconds=ingestion.expired_seconds,
                serialized_filters=serialize_filters(self._request.filters),
                is_volatile=is_volatile,
                is_async=self._request.is_async,
            )
        else:
            record = replace(
                existing,
                engine_query_token=query_token or existing.engine_query_token,
                serialized_filters=serialize_filters(self._request.filters),
                is_async=self._request.is_async,
                status="PENDING",
            )
        return self._collaborators.registry.upsert(record)

    def _resolve_completion(
        self, engine_name: str
    ) -> Generator[ProgressEvent, None, tuple[LoadStatus, ProgressEvent]]:
        """Wait for the copy when asynchronous; return its status and closing event."""
        completed = ProgressEvent(percent=100, code=COMPLETE_LOAD)
        if not self._request.is_async:
            return "ENABLE", completed
        plan = build_poll_plan(self._config.load_timeout_seconds, self._config.poll_strategy)
        poller = CompletionPoller(
            self._collaborators.engine, self._request.cancel_event, self._sleep
        )
        succeeded = yield from poller.iter_poll(
            engine_name, plan.interval_seconds, plan.max_attempts
        )
        if succeeded:
            return "ENABLE", completed
        _LOGGER.warning(
            "temporary_load_timed_out",
            request_id=self._request_id,
            engine_name=engine_name,
            cancelled=poller.cancelled,
            max_wait_seconds=plan.max_wait_seconds,
        )
        failure_code = CANCEL_LOAD if poller.cancelled else TIMEOUT_LOAD
        return "FAIL", ProgressEvent(percent=-1, code=failure_code)


def load_temporary(
    request: LoadRequest,
    collaborators: LoadCollaborators,
    config: EphemeraConfig,
    reporter: ProgressReporter | None = None,
) -> TemporaryCopyRecord:
    """Load a source into the query engine as a temporary copy.

    Args:
        request: Load request.
        collaborators: Extraction, transfer, engine, and persistence back-ends.
        config: Runtime configuration.
        reporter: Optional progress sink.

    Returns:
        Final temporary copy record; ``status`` is ENABLE or FAIL.

    Raises:
        EphemeraPreconditionError: If the source lacks ingestion info or connection.
        EphemeraExtractionError: If extraction fails or returns no rows.
        EphemeraSubmissionError: If the engine rejects or ignores the load.
        EphemeraLoadConflictError: If the same request id is already loading.
    """
    runner = TemporaryLoadRunner(request, collaborators, config)
    return runner.run(reporter)


def _check_preconditions(source: SourceDescriptor) -> tuple[ConnectionInfo, LinkIngestionInfo]:
    """Validate a source before any side effect of the load.

    Raises:
        EphemeraPreconditionError: If ingestion info or connection is missing, or
            more than one field holds the TIMESTAMP role.
    """
    if source.ingestion is None:
        raise EphemeraPreconditionError(
            f"Source '{source.name}' has no ingestion info. Define a source query or table."
        )
    if source.connection is None:
        raise EphemeraPreconditionError(
            f"Source '{source.name}' has no connection. Connection info is required."
        )
    timestamp_fields = [item.name for item in source.fields if item.role == "TIMESTAMP"]
    if len(timestamp_fields) > 1:
        raise EphemeraPreconditionError(
            f"Source '{source.name}' has {len(timestamp_fields)} TIMESTAMP fields "
            f"({', '.join(timestamp_fields)}). Keep one and mark the rest DIMENSION."
        )
    return source.connection, source.ingestion


def _normalize_staged_files(source: SourceDescriptor, staged_paths: list[Path]) -> list[Path]:
    """Normalize the time column across every staged file of one load."""
    loaded_at = datetime.now(timezone.utc)
    first_path = normalize_time_column(source, staged_paths[0], now=loaded_at)
    if first_path == staged_paths[0]:
        return list(staged_paths)
    return [
        first_path,
        *(
            append_timestamp_column(path, loaded_at.isoformat(), FIELD_NAME_CURRENT_TIMESTAMP)
            for path in staged_paths[1:]
        ),
    ]


def _generate_request_id() -> str:
    return f"{TEMPORARY_ID_PREFIX}{uuid4().hex}"


def _generate_engine_name(source: SourceDescriptor) -> str:
    alphabet = string.ascii_lowercase + string.digits
    suffix = "".join(random.choices(alphabet, k=ENGINE_NAME_SUFFIX_LENGTH))
    return f"{source.engine_name}_{suffix}"
