"""
History engine for clipkeep.

The engine is the layer the CLI talks to. For each operation it opens the
right kind of connection (read-only for list/get/info, read-write for
everything that mutates), runs one logical operation against the entry store
and closes the connection again. No state is kept between operations.

It also owns the policy that sits in front of the store:
    - Store filters: size limits, whitespace-only payloads, ignore pattern
    - Age pruning: entries older than `max_entry_age` are dropped on store
    - Selection lines: `<id>\\t<preview>` lines from `list` resolve to ids
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from clipkeep.errors import SelectionParseError
from clipkeep.schema import Config, EntryPreview
from clipkeep.store import EntryStore, Migrator, open_read_only, open_read_write
from clipkeep.store.migrations import DEFAULT_MIGRATOR

logger = logging.getLogger(__name__)

_SELECTION_ID = re.compile(r"^\s*(\d+)(?:\t|$)")


def parse_selection(line: str) -> int:
    """
    Extract the entry id from a selection line.

    Raises:
        SelectionParseError: If the line does not start with an id
    """
    match = _SELECTION_ID.match(line.rstrip("\r\n"))
    if match is None or int(match.group(1)) < 1:
        raise SelectionParseError(line=line)
    return int(match.group(1))


@dataclass
class StoreResult:
    """
    Outcome of a store request.

    Attributes:
        entry_id: Id of the stored entry (None if skipped)
        skipped_reason: Why the payload was not stored
        pruned: Entries removed by age pruning
    """

    entry_id: int | None = None
    skipped_reason: str | None = None
    pruned: int = 0

    @property
    def stored(self) -> bool:
        """Whether the payload was stored."""
        return self.entry_id is not None


@dataclass
class HistoryStats:
    """Summary shown by `clipkeep info`."""

    db_path: Path
    schema_version: int
    latest_version: int
    entries: int
    max_entries: int


class ClipboardHistory:
    """
    Clipboard history operations over a configured database.

    Usage:
        history = ClipboardHistory(load_config())
        history.store(b"hello")
        history.get(0)

    Attributes:
        config: Settings in effect
        migrator: Migration set applied on open
    """

    def __init__(self, config: Config | None = None, migrator: Migrator = DEFAULT_MIGRATOR) -> None:
        self.config = config or Config()
        self.migrator = migrator
        self._ignore = re.compile(self.config.ignore_pattern) if self.config.ignore_pattern else None

    @property
    def db_path(self) -> Path:
        return self.config.db_path

    def _open(self, read_only: bool) -> EntryStore:
        opener = open_read_only if read_only else open_read_write
        conn = opener(self.db_path, timeout=self.config.lock_timeout, migrator=self.migrator)
        return EntryStore(conn, max_entries=self.config.max_entries, db_path=self.db_path)

    # =========================================================================
    # Store
    # =========================================================================

    def skip_reason(self, content: bytes) -> str | None:
        """Reason `content` should not be stored, or None to store it."""
        size = len(content)
        if size < self.config.min_entry_length:
            return f"shorter than {self.config.min_entry_length} bytes"
        if size > self.config.max_entry_length:
            return f"longer than {self.config.max_entry_length} bytes"
        if not content.strip():
            return "whitespace only"
        if self._ignore is not None:
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError:
                return None
            if self._ignore.search(text):
                return "matches ignore pattern"
        return None

    def store(self, content: bytes) -> StoreResult:
        """Store `content` unless a filter rejects it, pruning expired entries first."""
        reason = self.skip_reason(content)
        if reason is not None:
            logger.debug("Not storing %d bytes: %s", len(content), reason)
            return StoreResult(skipped_reason=reason)

        with self._open(read_only=False) as store:
            pruned = 0
            if self.config.max_entry_age is not None:
                pruned = store.prune_older_than(timedelta(seconds=self.config.max_entry_age))
            entry_id = store.store(content)
        return StoreResult(entry_id=entry_id, pruned=pruned)

    # =========================================================================
    # Read
    # =========================================================================

    def list_entries(self, width: int | None = None, reverse: bool = False) -> list[EntryPreview]:
        """Previews, most recent first (oldest first with reverse)."""
        with self._open(read_only=True) as store:
            return store.list_entries(width or self.config.preview_width, reverse=reverse)

    def get(self, index: int) -> bytes:
        with self._open(read_only=True) as store:
            return store.get(index)

    def get_selection(self, line: str) -> bytes:
        """Content of the entry named by a selection line."""
        entry_id = parse_selection(line)
        with self._open(read_only=True) as store:
            return store.get_by_id(entry_id)

    def stats(self) -> HistoryStats:
        with self._open(read_only=True) as store:
            return HistoryStats(
                db_path=self.db_path,
                schema_version=store.schema_version(),
                latest_version=self.migrator.latest_version,
                entries=store.count(),
                max_entries=self.config.max_entries,
            )

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(self, selector: int | bytes) -> int:
        """Delete by recency index or exact content."""
        with self._open(read_only=False) as store:
            return store.delete(selector)

    def delete_selection(self, line: str) -> int:
        """Delete the entry named by a selection line. Returns 0 if it is already gone."""
        entry_id = parse_selection(line)
        with self._open(read_only=False) as store:
            return store.delete_by_id(entry_id)

    def clear(self) -> int:
        with self._open(read_only=False) as store:
            return store.clear()
