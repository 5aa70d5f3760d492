"""
Exception hierarchy for clipkeep.

All clipkeep exceptions inherit from ClipKeepError, allowing callers to catch
every clipkeep-specific failure with a single except clause.

Exception Categories:
    - StorageError: The database file could not be opened, read or written
    - SchemaStateError: Migrations failed or the schema is missing
    - LookupFailure: An index, id or selection did not resolve to an entry
    - ConfigError: Settings could not be loaded or validated

Each error carries the phase that failed ("open", "migrate", "query") in its
context so the CLI can report where things went wrong, and a distinct numeric
code that doubles as the process exit code.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Storage errors: 1xxx
ERROR_STORAGE_IO = 1001
ERROR_STORAGE_LOCKED = 1002
ERROR_STORAGE_PERMISSION = 1003

# Schema errors: 2xxx
ERROR_MIGRATION_FAILED = 2001
ERROR_SCHEMA_MISSING = 2002

# Lookup errors: 3xxx
ERROR_INDEX_OUT_OF_RANGE = 3001
ERROR_EMPTY_STORE = 3002
ERROR_ENTRY_NOT_FOUND = 3003
ERROR_SELECTION_INVALID = 3004
ERROR_QUERY_FAILED = 3005

# Config errors: 4xxx
ERROR_CONFIG_INVALID = 4001

# Process exit codes, one per error kind
EXIT_CODES = {
    ERROR_STORAGE_IO: 10,
    ERROR_STORAGE_LOCKED: 11,
    ERROR_STORAGE_PERMISSION: 12,
    ERROR_MIGRATION_FAILED: 20,
    ERROR_SCHEMA_MISSING: 21,
    ERROR_INDEX_OUT_OF_RANGE: 30,
    ERROR_EMPTY_STORE: 31,
    ERROR_ENTRY_NOT_FOUND: 32,
    ERROR_SELECTION_INVALID: 33,
    ERROR_QUERY_FAILED: 34,
    ERROR_CONFIG_INVALID: 40,
}


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ClipKeepError(Exception):
    """
    Base exception for all clipkeep errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    @property
    def exit_code(self) -> int:
        """Process exit code for this error kind."""
        return EXIT_CODES.get(self.code, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(ClipKeepError):
    """
    Base class for errors touching the database file.

    Attributes:
        db_path: Path of the database file involved
        phase: Which phase failed ("open", "migrate", "query")
    """

    db_path: str = ""
    phase: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "db_path": self.db_path,
            "phase": self.phase,
        })


@dataclass
class StorageIOError(StorageError):
    """Raised when the database file cannot be created, opened, read or written."""

    underlying_error: str = ""
    locked: bool = False

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            if self.locked:
                self.message = f"Database is locked: {self.db_path}"
            else:
                self.message = f"Database I/O failed ({self.phase}): {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_LOCKED if self.locked else ERROR_STORAGE_IO
        if not self.suggestion:
            if self.locked:
                self.suggestion = "Another clipkeep process is writing; try again"
            else:
                self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class FilePermissionError(StorageError):
    """Raised when the database file mode cannot be forced to owner read-write."""

    actual_mode: int | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot set permissions 0600 on {self.db_path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_PERMISSION
        if not self.suggestion:
            self.suggestion = "Make sure the database file is owned by the current user"
        super().__post_init__()
        self.context.update({
            "actual_mode": oct(self.actual_mode) if self.actual_mode is not None else None,
            "underlying_error": self.underlying_error,
        })


@dataclass
class StorageQueryError(StorageError):
    """Raised when a query against a bootstrapped database fails."""

    operation: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Query {self.operation} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_QUERY_FAILED
        if not self.phase:
            self.phase = "query"
        super().__post_init__()
        self.context.update({
            "operation": self.operation,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Schema Errors
# =============================================================================


@dataclass
class MigrationError(StorageError):
    """
    Raised when a schema revision fails to apply.

    The database is left at the last successfully applied revision.

    Attributes:
        version: The revision that failed
        applied_version: The revision the file is at
    """

    version: int | None = None
    applied_version: int | None = None
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Schema revision {self.version} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_MIGRATION_FAILED
        if not self.phase:
            self.phase = "migrate"
        super().__post_init__()
        self.context.update({
            "version": self.version,
            "applied_version": self.applied_version,
            "underlying_error": self.underlying_error,
        })


@dataclass
class SchemaError(StorageError):
    """Raised when the entries table is missing after bootstrap."""

    table: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Table {self.table!r} missing from {self.db_path}"
        if self.code == 0:
            self.code = ERROR_SCHEMA_MISSING
        if not self.suggestion:
            self.suggestion = "The database may be corrupted. Move it aside and retry."
        if not self.phase:
            self.phase = "open"
        super().__post_init__()
        self.context["table"] = self.table


# =============================================================================
# Lookup Errors
# =============================================================================


@dataclass
class IndexOutOfRangeError(ClipKeepError):
    """Raised when a recency index falls outside [-count, count - 1]."""

    index: int = 0
    count: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Index {self.index} out of range for {self.count} entries "
                f"(valid: {-self.count}..{self.count - 1})"
            )
        if self.code == 0:
            self.code = ERROR_INDEX_OUT_OF_RANGE
        self.context.update({
            "index": self.index,
            "count": self.count,
        })


@dataclass
class EmptyStoreError(ClipKeepError):
    """Raised when an index lookup hits a store with no entries."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Clipboard history is empty"
        if self.code == 0:
            self.code = ERROR_EMPTY_STORE
        if not self.suggestion:
            self.suggestion = "Store something first: echo hello | clipkeep store"


@dataclass
class EntryNotFoundError(ClipKeepError):
    """Raised when an entry id does not exist."""

    entry_id: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Entry not found: {self.entry_id}"
        if self.code == 0:
            self.code = ERROR_ENTRY_NOT_FOUND
        self.context["entry_id"] = self.entry_id


@dataclass
class SelectionParseError(ClipKeepError):
    """Raised when a selection line does not start with an entry id."""

    line: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot parse entry id from selection: {self.line[:40]!r}"
        if self.code == 0:
            self.code = ERROR_SELECTION_INVALID
        if not self.suggestion:
            self.suggestion = "Pass a line printed by `clipkeep list`, or use --index"
        self.context["line"] = self.line


# =============================================================================
# Config Errors
# =============================================================================


@dataclass
class ConfigError(ClipKeepError):
    """Raised when configuration cannot be loaded or is invalid."""

    source: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        if not self.message:
            self.message = f"Invalid configuration in {self.source}"
        self.context["source"] = self.source
