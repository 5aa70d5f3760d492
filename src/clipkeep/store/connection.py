"""
Connection management for the clipkeep database.

Two kinds of handle are produced:

- read-write: creates the file if needed, forces mode 0600, switches the
  journal to WAL and applies pending migrations.
- read-only: opened with `mode=ro` so it never takes the write lock. If the
  file is missing or not at the latest schema revision, a one-time
  read-write bootstrap runs first and is closed before the read-only reopen.

Both kinds leave the database file at mode 0600. Connections are returned in
autocommit mode (isolation_level=None); callers issue BEGIN themselves.
"""

import logging
import os
import sqlite3
import stat
from enum import Enum
from pathlib import Path

from clipkeep.errors import FilePermissionError, SchemaError, StorageIOError
from clipkeep.schema import DEFAULT_LOCK_TIMEOUT
from clipkeep.store.migrations import (
    DEFAULT_MIGRATOR,
    ENTRIES_TABLE,
    Migrator,
    get_user_version,
)

logger = logging.getLogger(__name__)

DB_FILE_MODE = 0o600
DB_DIR_MODE = 0o700


class DatabaseState(str, Enum):
    """What a read-only open finds at a path before deciding to bootstrap."""

    MISSING = "missing"
    UNINITIALIZED = "uninitialized"  # file exists, entries table absent
    OUTDATED = "outdated"  # table present, revision differs from latest
    READY = "ready"


def is_lock_error(error: sqlite3.Error) -> bool:
    """Whether a sqlite error is a busy/locked timeout."""
    message = str(error).lower()
    return "locked" in message or "busy" in message


def _io_error(path: Path, phase: str, error: Exception) -> StorageIOError:
    locked = isinstance(error, sqlite3.Error) and is_lock_error(error)
    return StorageIOError(
        db_path=str(path),
        phase=phase,
        underlying_error=str(error),
        locked=locked,
    )


def ensure_permissions(path: Path) -> None:
    """
    Force the database file to mode 0600.

    Raises:
        FilePermissionError: If the mode cannot be read or changed
    """
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except OSError as e:
        raise FilePermissionError(
            db_path=str(path),
            phase="open",
            underlying_error=str(e),
        ) from e

    if mode == DB_FILE_MODE:
        return

    logger.warning("Fixing permissions on %s: %o -> %o", path, mode, DB_FILE_MODE)
    try:
        os.chmod(path, DB_FILE_MODE)
    except OSError as e:
        raise FilePermissionError(
            db_path=str(path),
            phase="open",
            actual_mode=mode,
            underlying_error=str(e),
        ) from e


def _require_file(path: Path) -> None:
    """Raise StorageIOError if `path` exists but is not a regular file."""
    if path.exists() and not path.is_file():
        raise StorageIOError(
            db_path=str(path),
            phase="open",
            underlying_error="not a regular file",
        )


def _create_file(path: Path) -> None:
    """Create the database file with mode 0600 from the start."""
    try:
        path.parent.mkdir(mode=DB_DIR_MODE, parents=True, exist_ok=True)
        fd = os.open(path, os.O_CREAT | os.O_RDWR, DB_FILE_MODE)
        os.close(fd)
    except OSError as e:
        raise _io_error(path, "open", e) from e


def _connect(target: str, path: Path, timeout: float, uri: bool = False) -> sqlite3.Connection:
    try:
        conn = sqlite3.connect(target, timeout=timeout, isolation_level=None, uri=uri)
    except sqlite3.Error as e:
        raise _io_error(path, "open", e) from e
    conn.row_factory = sqlite3.Row
    return conn


def table_exists(conn: sqlite3.Connection, table: str = ENTRIES_TABLE) -> bool:
    """Whether `table` exists in the connected database."""
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def open_read_write(
    path: Path | str,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    migrator: Migrator = DEFAULT_MIGRATOR,
) -> sqlite3.Connection:
    """
    Open (creating if absent) the database for reading and writing.

    Args:
        path: Database file path
        timeout: Seconds to wait for locks held by other connections
        migrator: Migration set to apply

    Returns:
        Autocommit connection at the latest schema revision, in WAL mode

    Raises:
        StorageIOError: If the file cannot be created or opened
        FilePermissionError: If the file mode cannot be forced to 0600
        MigrationError: If a schema revision fails to apply
    """
    path = Path(path)
    logger.debug("Opening %s read-write", path)

    if not path.exists():
        logger.debug("Creating database file %s", path)
        _create_file(path)
    _require_file(path)
    ensure_permissions(path)

    conn = _connect(str(path), path, timeout)
    try:
        mode = conn.execute("PRAGMA journal_mode = WAL").fetchone()[0]
        if str(mode).lower() != "wal":
            logger.warning("WAL journal mode unavailable for %s, using %s", path, mode)
        migrator.apply(conn, db_path=str(path))
    except sqlite3.Error as e:
        conn.close()
        raise _io_error(path, "open", e) from e
    except Exception:
        conn.close()
        raise

    return conn


def probe_database(
    path: Path | str,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    migrator: Migrator = DEFAULT_MIGRATOR,
) -> DatabaseState:
    """
    Inspect a database file without taking write locks.

    Raises:
        StorageIOError: If the file exists but cannot be read as a database
    """
    path = Path(path)
    if not path.exists():
        return DatabaseState.MISSING

    conn = _connect(_read_only_uri(path), path, timeout, uri=True)
    try:
        if not table_exists(conn):
            return DatabaseState.UNINITIALIZED
        if get_user_version(conn) != migrator.latest_version:
            return DatabaseState.OUTDATED
        return DatabaseState.READY
    except sqlite3.Error as e:
        raise _io_error(path, "open", e) from e
    finally:
        conn.close()


def _read_only_uri(path: Path) -> str:
    return f"{path.resolve().as_uri()}?mode=ro"


def open_read_only(
    path: Path | str,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    migrator: Migrator = DEFAULT_MIGRATOR,
) -> sqlite3.Connection:
    """
    Open the database for reading only, bootstrapping it first if needed.

    The returned connection cannot write and never takes the write lock, so
    readers do not contend with a writer. Callers never observe a file that
    exists but has no schema.

    Args:
        path: Database file path
        timeout: Seconds to wait for locks held by other connections
        migrator: Migration set the file must be current with

    Returns:
        Read-only autocommit connection

    Raises:
        StorageIOError: If the file cannot be created or opened
        FilePermissionError: If the file mode cannot be forced to 0600
        MigrationError: If the bootstrap's schema upgrade fails
        SchemaError: If the entries table is absent after bootstrap
    """
    path = Path(path)
    if path.exists():
        _require_file(path)
        ensure_permissions(path)
    state = probe_database(path, timeout=timeout, migrator=migrator)
    logger.debug("Opening %s read-only (state: %s)", path, state.value)

    if state is not DatabaseState.READY:
        logger.debug("Bootstrapping %s before read-only open", path)
        open_read_write(path, timeout=timeout, migrator=migrator).close()

    conn = _connect(_read_only_uri(path), path, timeout, uri=True)
    try:
        conn.execute("PRAGMA query_only = ON")
        if not table_exists(conn):
            raise SchemaError(db_path=str(path), table=ENTRIES_TABLE)
    except sqlite3.Error as e:
        conn.close()
        raise _io_error(path, "open", e) from e
    except Exception:
        conn.close()
        raise

    return conn
