"""Pytest configuration for parser corpus tests."""

from pathlib import Path

import pytest

CORPORA_DIR = Path(__file__).parent.parent / "corpora"


@pytest.fixture
def corpora_dir() -> Path:
    """Return path to the Hermes corpus directory."""
    return CORPORA_DIR
