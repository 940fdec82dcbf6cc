"""Pytest session setup for Dealbook tests."""

from __future__ import annotations

import sys
from pathlib import Path

_SRC_PATH = Path(__file__).resolve().parent.parent / "src"


def pytest_sessionstart() -> None:
    """Make the flat src packages importable without an editable install."""
    if str(_SRC_PATH) not in sys.path:
        sys.path.insert(0, str(_SRC_PATH))
