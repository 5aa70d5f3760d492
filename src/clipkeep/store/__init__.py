"""
Storage module for clipkeep.

This module provides SQLite-based persistence for clipboard history:
    - migrations: ordered, immutable schema revisions tracked in user_version
    - connection: read-write and self-bootstrapping read-only handles, mode 0600
    - entries: bounded, deduplicated, recency-ordered entry store
    - preview: display decoding and truncation
"""

from clipkeep.store.connection import (
    DatabaseState,
    ensure_permissions,
    open_read_only,
    open_read_write,
    probe_database,
)
from clipkeep.store.entries import EntryStore, resolve_index
from clipkeep.store.migrations import MIGRATIONS, Migration, Migrator
from clipkeep.store.preview import make_preview

__all__ = [
    "DatabaseState",
    "EntryStore",
    "MIGRATIONS",
    "Migration",
    "Migrator",
    "ensure_permissions",
    "make_preview",
    "open_read_only",
    "open_read_write",
    "probe_database",
    "resolve_index",
]
