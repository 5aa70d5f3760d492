"""
Pytest configuration and fixtures for clipkeep tests.

This module provides shared fixtures used across unit and integration tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from clipkeep.schema import Config
from clipkeep.store import EntryStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Path of a database file that does not exist yet."""
    return temp_dir / "history.db"


@pytest.fixture
def store(db_path: Path) -> Generator[EntryStore, None, None]:
    """A read-write entry store with capacity 3."""
    entry_store = EntryStore.open(db_path, max_entries=3)
    yield entry_store
    entry_store.close()


@pytest.fixture
def config(db_path: Path) -> Config:
    """Config pointing at the temporary database."""
    return Config(db_path=db_path, max_entries=3, preview_width=20)
