"""JSON I/O helpers for registry and source catalog documents."""

from __future__ import annotations

import json
import os
from pathlib import Path

from core.errors import EphemeraStoreError


def read_json_file(payload_path: Path, default_value: object | None = None) -> object:
    """Read JSON payload from disk with optional default when missing."""
    if default_value is not None and not payload_path.exists():
        return default_value
    try:
        return json.loads(payload_path.read_text(encoding="utf-8"))
    except FileNotFoundError as error:
        raise EphemeraStoreError(f"Missing required document at {payload_path}.") from error
    except json.JSONDecodeError as error:
        raise EphemeraStoreError(f"Failed to parse JSON at {payload_path}: {error.msg}.") from error
    except OSError as error:
        raise EphemeraStoreError(f"Failed to read document {payload_path}: {error}.") from error


def write_json_file(payload_path: Path, payload: object) -> None:
    """Write one JSON payload to disk, replacing any previous document."""
    temp_path = payload_path.with_name(f".{payload_path.name}.tmp")
    try:
        temp_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        os.replace(temp_path, payload_path)
    except OSError as error:
        raise EphemeraStoreError(f"Failed to write document {payload_path}: {error}.") from error
