"""
Schema migrations for the clipkeep database.

Revisions are immutable once published: a schema change is always a new
revision appended to MIGRATIONS, never an edit to an existing one, so a
file's revision number fully determines its shape.

The applied revision is stored in the database header (PRAGMA user_version).
Each revision runs inside its own BEGIN IMMEDIATE transaction together with
the user_version bump, so a failure rolls back to the previous revision and
a concurrent process bootstrapping the same file waits instead of racing.
"""

import logging
import sqlite3
from dataclasses import dataclass

from clipkeep.errors import MigrationError

logger = logging.getLogger(__name__)

ENTRIES_TABLE = "entries"


@dataclass(frozen=True)
class Migration:
    """
    One schema revision.

    Attributes:
        version: Revision number, contiguous from 1
        description: Short summary shown in logs
        statements: SQL statements applied in order
    """

    version: int
    description: str
    statements: tuple[str, ...]


MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        version=1,
        description="create entries table",
        statements=(
            """
            CREATE TABLE entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content BLOB NOT NULL UNIQUE,
                created_at TEXT NOT NULL
            )
            """,
        ),
    ),
    Migration(
        version=2,
        description="track recency separately from insertion order",
        statements=(
            "ALTER TABLE entries ADD COLUMN last_used INTEGER NOT NULL DEFAULT 0",
            "UPDATE entries SET last_used = id",
            "CREATE INDEX idx_entries_last_used ON entries(last_used)",
        ),
    ),
    Migration(
        version=3,
        description="record when an entry was last stored",
        statements=(
            "ALTER TABLE entries ADD COLUMN last_seen_at TEXT",
            "UPDATE entries SET last_seen_at = created_at",
        ),
    ),
)


def get_user_version(conn: sqlite3.Connection) -> int:
    """Read the applied schema revision from the database header."""
    return conn.execute("PRAGMA user_version").fetchone()[0]


class Migrator:
    """
    Applies pending schema revisions to a connection.

    Usage:
        migrator = Migrator(MIGRATIONS)
        applied = migrator.apply(conn)

    The connection must be in autocommit mode (isolation_level=None) so the
    migrator controls transaction boundaries itself.
    """

    def __init__(self, migrations: tuple[Migration, ...] = MIGRATIONS) -> None:
        self.migrations = tuple(migrations)
        self.validate()

    @property
    def latest_version(self) -> int:
        """Revision number of the newest migration (0 if none)."""
        return self.migrations[-1].version if self.migrations else 0

    def validate(self) -> None:
        """
        Check that versions run contiguously from 1.

        Raises:
            MigrationError: If a version is missing, repeated or out of order
        """
        for expected, migration in enumerate(self.migrations, start=1):
            if migration.version != expected:
                raise MigrationError(
                    message=(
                        f"Migration versions must be contiguous from 1: "
                        f"expected {expected}, found {migration.version}"
                    ),
                    version=migration.version,
                )
            if not migration.statements:
                raise MigrationError(
                    message=f"Migration {migration.version} has no statements",
                    version=migration.version,
                )

    def current_version(self, conn: sqlite3.Connection) -> int:
        """Applied revision of the connected database."""
        return get_user_version(conn)

    def pending(self, conn: sqlite3.Connection) -> list[Migration]:
        """Revisions newer than the connected database's revision."""
        current = self.current_version(conn)
        return [m for m in self.migrations if m.version > current]

    def apply(self, conn: sqlite3.Connection, db_path: str = "") -> int:
        """
        Bring the database to the latest revision.

        Args:
            conn: Autocommit connection opened read-write
            db_path: Path used in error context

        Returns:
            Number of revisions applied (0 if already current)

        Raises:
            MigrationError: If a revision fails or the file is newer than
                this version of clipkeep knows about
        """
        try:
            current = self.current_version(conn)
        except sqlite3.Error as e:
            raise MigrationError(
                message=f"Cannot read schema revision: {e}",
                db_path=db_path,
                underlying_error=str(e),
            ) from e

        if current > self.latest_version:
            raise MigrationError(
                message=(
                    f"Database revision {current} is newer than the latest "
                    f"known revision {self.latest_version}"
                ),
                db_path=db_path,
                applied_version=current,
                suggestion="Upgrade clipkeep to open this database",
            )

        applied = 0
        for migration in self.migrations:
            if migration.version <= current:
                continue
            if self._apply_one(conn, migration, db_path):
                applied += 1
            current = migration.version

        if applied:
            logger.info("Database %s migrated to revision %d", db_path, current)
        else:
            logger.debug("Database %s already at revision %d", db_path, current)
        return applied

    def _apply_one(self, conn: sqlite3.Connection, migration: Migration, db_path: str) -> bool:
        """Apply a single revision atomically. Returns False if another process beat us to it."""
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise MigrationError(
                version=migration.version,
                db_path=db_path,
                underlying_error=str(e),
            ) from e

        try:
            # Re-check under the write lock; a concurrent bootstrap may have
            # applied this revision while we waited.
            applied_version = get_user_version(conn)
            if applied_version >= migration.version:
                conn.execute("COMMIT")
                logger.debug("Revision %d already applied by another connection", migration.version)
                return False

            logger.debug("Applying revision %d: %s", migration.version, migration.description)
            for statement in migration.statements:
                conn.execute(statement)
            # PRAGMA does not accept bound parameters; version is an int we own.
            conn.execute(f"PRAGMA user_version = {int(migration.version)}")
            conn.execute("COMMIT")
            return True
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise MigrationError(
                version=migration.version,
                applied_version=migration.version - 1,
                db_path=db_path,
                underlying_error=str(e),
            ) from e


DEFAULT_MIGRATOR = Migrator(MIGRATIONS)
