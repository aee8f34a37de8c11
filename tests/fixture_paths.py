"""Shared fixture path helpers for tests."""

from __future__ import annotations

from pathlib import Path


def fixture_path(relative_path: str) -> Path:
    """Resolve a path under tests/fixtures."""
    return Path(__file__).resolve().parent / "fixtures" / relative_path


def source_fixture(file_name: str) -> str:
    """Return the string path of a YAML source descriptor fixture."""
    return str(fixture_path(f"sources/{file_name}"))
