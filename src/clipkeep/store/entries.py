"""
Clipboard entry storage.

Entries live in a single table ordered by a recency counter (`last_used`):
storing new content takes the next counter value, and storing content that is
already present bumps the existing row instead of adding a duplicate. The
table never holds more than `max_entries` rows; the least recently used rows
are evicted inside the same transaction as the insert.

Indexes are recency positions: 0 is the most recent entry, -1 the oldest.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from clipkeep.errors import (
    EmptyStoreError,
    EntryNotFoundError,
    IndexOutOfRangeError,
    StorageError,
    StorageIOError,
    StorageQueryError,
)
from clipkeep.schema import DEFAULT_LOCK_TIMEOUT, DEFAULT_MAX_ENTRIES, ClipboardEntry, EntryPreview
from clipkeep.store.connection import is_lock_error, open_read_only, open_read_write
from clipkeep.store.migrations import get_user_version
from clipkeep.store.preview import make_preview

logger = logging.getLogger(__name__)

Content = bytes | bytearray | memoryview


def now_iso(now: datetime | None = None) -> str:
    """UTC timestamp with fixed-width microseconds, so values sort as text."""
    return (now or datetime.now(UTC)).astimezone(UTC).isoformat(timespec="microseconds")


def resolve_index(index: int, count: int) -> int:
    """
    Map a recency index onto a position in [0, count).

    Non-negative indexes count from the most recent entry, negative ones from
    the oldest (-1 is the oldest).

    Raises:
        EmptyStoreError: If count is 0
        IndexOutOfRangeError: If index is outside [-count, count - 1]
    """
    if count == 0:
        raise EmptyStoreError()
    position = index + count if index < 0 else index
    if not 0 <= position < count:
        raise IndexOutOfRangeError(index=index, count=count)
    return position


class EntryStore:
    """
    Query layer over the entries table.

    Usage:
        with EntryStore.open("history.db") as store:
            store.store(b"hello")
            store.get(0)

    Read operations work on read-only connections; mutations need a
    read-write one.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        db_path: str | Path = "",
    ) -> None:
        """
        Wrap an open connection.

        Args:
            conn: Autocommit connection from the connection manager
            max_entries: Capacity enforced by store()
            db_path: Path used in error context
        """
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self._conn = conn
        self.max_entries = max_entries
        self.db_path = str(db_path)

    @classmethod
    def open(
        cls,
        path: str | Path,
        read_only: bool = False,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> "EntryStore":
        """Open the database at `path` and wrap the connection."""
        opener = open_read_only if read_only else open_read_write
        conn = opener(path, timeout=timeout)
        return cls(conn, max_entries=max_entries, db_path=path)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "EntryStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[sqlite3.Connection]:
        """
        Run a block in one transaction.

        Write transactions take the write lock up front (BEGIN IMMEDIATE) so
        the count check and eviction in store() see no interleaved writer.
        """
        self._conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
        try:
            yield self._conn
            self._conn.execute("COMMIT")
        except Exception:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise

    def _error(self, operation: str, error: sqlite3.Error) -> StorageError:
        if is_lock_error(error):
            return StorageIOError(
                db_path=self.db_path,
                phase="query",
                underlying_error=str(error),
                locked=True,
            )
        return StorageQueryError(
            db_path=self.db_path,
            operation=operation,
            underlying_error=str(error),
        )

    def _count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    def _id_at(self, position: int) -> int:
        row = self._conn.execute(
            "SELECT id FROM entries ORDER BY last_used DESC LIMIT 1 OFFSET ?",
            (position,),
        ).fetchone()
        return row["id"]

    # =========================================================================
    # Write Operations
    # =========================================================================

    def store(self, content: Content) -> int:
        """
        Store a clipboard payload.

        Existing content is moved to the most recent position and keeps its
        id; new content gets a fresh id. Afterwards the least recently used
        entries are evicted until at most `max_entries` remain.

        Args:
            content: Raw clipboard bytes

        Returns:
            The entry id

        Raises:
            TypeError: If content is not bytes-like
        """
        if not isinstance(content, (bytes, bytearray, memoryview)):
            raise TypeError(f"content must be bytes, not {type(content).__name__}")
        content = bytes(content)
        timestamp = now_iso()

        try:
            with self.transaction():
                next_used = self._conn.execute(
                    "SELECT COALESCE(MAX(last_used), 0) + 1 FROM entries"
                ).fetchone()[0]
                row = self._conn.execute(
                    "SELECT id FROM entries WHERE content = ?",
                    (content,),
                ).fetchone()

                if row is not None:
                    entry_id = row["id"]
                    self._conn.execute(
                        "UPDATE entries SET last_used = ?, last_seen_at = ? WHERE id = ?",
                        (next_used, timestamp, entry_id),
                    )
                    logger.debug("Refreshed entry %d", entry_id)
                else:
                    cursor = self._conn.execute(
                        """
                        INSERT INTO entries (content, created_at, last_used, last_seen_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (content, timestamp, next_used, timestamp),
                    )
                    entry_id = cursor.lastrowid
                    logger.debug("Inserted entry %d (%d bytes)", entry_id, len(content))

                evicted = self._conn.execute(
                    """
                    DELETE FROM entries WHERE id IN (
                        SELECT id FROM entries ORDER BY last_used DESC LIMIT -1 OFFSET ?
                    )
                    """,
                    (self.max_entries,),
                ).rowcount
        except sqlite3.Error as e:
            raise self._error("store", e) from e

        if evicted:
            logger.info("Evicted %d entries over capacity %d", evicted, self.max_entries)
        return entry_id

    def delete(self, selector: int | Content) -> int:
        """
        Delete by recency index (int) or by exact content (bytes).

        Returns:
            Number of entries deleted; 0 if no entry has the given content

        Raises:
            EmptyStoreError: If deleting by index from an empty store
            IndexOutOfRangeError: If the index does not resolve
            TypeError: If selector is neither an int nor bytes-like
        """
        if isinstance(selector, bool):
            raise TypeError("selector must be an index or bytes, not bool")

        try:
            if isinstance(selector, int):
                with self.transaction():
                    position = resolve_index(selector, self._count())
                    entry_id = self._id_at(position)
                    self._conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
                logger.debug("Deleted entry %d at index %d", entry_id, selector)
                return 1

            if isinstance(selector, (bytes, bytearray, memoryview)):
                with self.transaction():
                    deleted = self._conn.execute(
                        "DELETE FROM entries WHERE content = ?",
                        (bytes(selector),),
                    ).rowcount
                logger.debug("Deleted %d entries by content", deleted)
                return deleted
        except sqlite3.Error as e:
            raise self._error("delete", e) from e

        raise TypeError(f"selector must be an index or bytes, not {type(selector).__name__}")

    def delete_by_id(self, entry_id: int) -> int:
        """Delete the entry with `entry_id`. Returns the number deleted (0 or 1)."""
        try:
            with self.transaction():
                return self._conn.execute(
                    "DELETE FROM entries WHERE id = ?",
                    (entry_id,),
                ).rowcount
        except sqlite3.Error as e:
            raise self._error("delete_by_id", e) from e

    def clear(self) -> int:
        """Delete every entry. Returns the number deleted."""
        try:
            with self.transaction():
                deleted = self._conn.execute("DELETE FROM entries").rowcount
        except sqlite3.Error as e:
            raise self._error("clear", e) from e
        logger.info("Cleared %d entries", deleted)
        return deleted

    def prune_older_than(self, max_age: timedelta, now: datetime | None = None) -> int:
        """
        Delete entries not stored within `max_age`.

        Returns:
            Number of entries deleted
        """
        cutoff = now_iso((now or datetime.now(UTC)) - max_age)
        try:
            with self.transaction():
                deleted = self._conn.execute(
                    "DELETE FROM entries WHERE last_seen_at < ?",
                    (cutoff,),
                ).rowcount
        except sqlite3.Error as e:
            raise self._error("prune", e) from e
        if deleted:
            logger.info("Pruned %d entries older than %s", deleted, max_age)
        return deleted

    # =========================================================================
    # Read Operations
    # =========================================================================

    def count(self) -> int:
        """Number of stored entries."""
        try:
            return self._count()
        except sqlite3.Error as e:
            raise self._error("count", e) from e

    def schema_version(self) -> int:
        """Applied schema revision of the underlying file."""
        try:
            return get_user_version(self._conn)
        except sqlite3.Error as e:
            raise self._error("schema_version", e) from e

    def list_entries(self, max_preview_width: int, reverse: bool = False) -> list[EntryPreview]:
        """
        List entries with display previews.

        Args:
            max_preview_width: Maximum preview length in characters
            reverse: Oldest first instead of most recent first; each row
                keeps its recency index

        Returns:
            Fresh list of EntryPreview rows

        Raises:
            ValueError: If max_preview_width is less than 1
        """
        if max_preview_width < 1:
            raise ValueError(f"Preview width must be at least 1, got {max_preview_width}")
        try:
            rows = self._conn.execute(
                "SELECT id, content FROM entries ORDER BY last_used DESC"
            ).fetchall()
        except sqlite3.Error as e:
            raise self._error("list", e) from e

        previews = [
            EntryPreview(
                index=index,
                entry_id=row["id"],
                preview=make_preview(row["content"], max_preview_width),
            )
            for index, row in enumerate(rows)
        ]
        if reverse:
            previews.reverse()
        return previews

    def get_entry(self, index: int) -> ClipboardEntry:
        """
        Fetch the entry at a recency index.

        Raises:
            EmptyStoreError: If the store is empty
            IndexOutOfRangeError: If the index does not resolve
        """
        try:
            with self.transaction(write=False):
                position = resolve_index(index, self._count())
                row = self._conn.execute(
                    """
                    SELECT id, content, created_at FROM entries
                    ORDER BY last_used DESC LIMIT 1 OFFSET ?
                    """,
                    (position,),
                ).fetchone()
        except sqlite3.Error as e:
            raise self._error("get", e) from e

        return ClipboardEntry(
            id=row["id"],
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def get(self, index: int) -> bytes:
        """Raw content of the entry at a recency index."""
        return self.get_entry(index).content

    def get_by_id(self, entry_id: int) -> bytes:
        """
        Raw content of the entry with `entry_id`.

        Raises:
            EntryNotFoundError: If no such entry exists
        """
        try:
            row = self._conn.execute(
                "SELECT content FROM entries WHERE id = ?",
                (entry_id,),
            ).fetchone()
        except sqlite3.Error as e:
            raise self._error("get_by_id", e) from e
        if row is None:
            raise EntryNotFoundError(entry_id=entry_id)
        return row["content"]
