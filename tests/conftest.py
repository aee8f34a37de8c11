"""Pytest configuration for Ephemera test runs."""

from __future__ import annotations

import sys
from pathlib import Path


def pytest_sessionstart() -> None:
    """Make the src packages and test helpers importable."""
    tests_root = Path(__file__).resolve().parent
    for import_root in (tests_root.parent / "src", tests_root):
        if str(import_root) not in sys.path:
            sys.path.insert(0, str(import_root))
