"""Core constants used across Ephemera modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".ephemera")
TEMPORARIES_DIR_NAME = "temporaries"
SOURCES_DIR_NAME = "sources"
STAGING_DIR_NAME = "staging"
ENGINE_DIR_NAME = "engine"
ENGINE_DATASET_SUFFIX = ".lance"
DEFAULT_LOAD_TIMEOUT_SECONDS = 900
DEFAULT_MAX_ROW = 1_000_000
DEFAULT_ASYNC_START_DELAY_SECONDS = 3.0
DEFAULT_EXPIRED_SECONDS = 3600
DEFAULT_LOAD_WORKERS = 4
LEGACY_POLL_MAX_ATTEMPTS = 90
POLL_TICK_DIVISOR = 50
POLL_PROGRESS_OFFSET = 10
POLL_STRATEGIES = ("legacy", "bounded")
DEFAULT_POLL_STRATEGY = "legacy"
TEMPORARY_ID_PREFIX = "tmp-"
SOURCE_ID_PREFIX = "ds-"
ENGINE_NAME_SUFFIX_LENGTH = 5
FIELD_NAME_CURRENT_TIMESTAMP = "current_datetime"
TOPIC_LOAD_PROGRESS = "/topic/datasources/{request_id}/progress"
QUERY_TOKEN_KEY = "queryId"
STAGING_FILE_SUFFIX = ".csv"
TIMESTAMPED_FILE_SUFFIX = "_ts.csv"
EXTRACT_FETCH_SIZE = 1000
