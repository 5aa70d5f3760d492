"""
Schema definitions for clipkeep.

This module defines the Pydantic models used throughout clipkeep:
- ClipboardEntry: One stored clipboard payload
- EntryPreview: One row of `list` output
- Config: User settings (capacity, limits, database location)

Configuration is read from YAML and then overridden by environment
variables, so a shell profile can tweak a single knob without a file.
"""

import os
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clipkeep.errors import ConfigError

DEFAULT_MAX_ENTRIES = 1000
DEFAULT_MAX_ENTRY_LENGTH = 5_000_000
DEFAULT_PREVIEW_WIDTH = 100
DEFAULT_LOCK_TIMEOUT = 5.0

APP_NAME = "clipkeep"

# Environment variable -> Config field
ENV_OVERRIDES = {
    "CLIPKEEP_DB": "db_path",
    "CLIPKEEP_MAX_ENTRIES": "max_entries",
    "CLIPKEEP_MAX_ENTRY_AGE": "max_entry_age",
}


def _xdg_dir(env: Mapping[str, str], var: str, fallback: str) -> Path:
    value = env.get(var)
    if value:
        return Path(value)
    return Path.home() / fallback


def default_db_path(env: Mapping[str, str] = os.environ) -> Path:
    """Database location under $XDG_DATA_HOME."""
    return _xdg_dir(env, "XDG_DATA_HOME", ".local/share") / APP_NAME / "history.db"


def default_config_path(env: Mapping[str, str] = os.environ) -> Path:
    """Config file location under $XDG_CONFIG_HOME."""
    return _xdg_dir(env, "XDG_CONFIG_HOME", ".config") / APP_NAME / "config.yaml"


# =============================================================================
# Entry Models
# =============================================================================


class ClipboardEntry(BaseModel):
    """
    A stored clipboard payload.

    Attributes:
        id: Store-assigned identifier, never reused
        content: Raw clipboard bytes
        created_at: When the entry was first stored
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(..., description="Store-assigned identifier", ge=1)
    content: bytes = Field(..., description="Raw clipboard bytes")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the entry was first stored",
    )


class EntryPreview(BaseModel):
    """
    A display row for the history listing.

    Attributes:
        index: Recency position (0 = most recent)
        entry_id: Identifier of the entry, used in selection lines
        preview: Decoded, truncated content
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    index: int = Field(..., description="Recency position", ge=0)
    entry_id: int = Field(..., description="Entry identifier", ge=1)
    preview: str = Field(..., description="Decoded, truncated content")

    def to_line(self) -> str:
        """Render as a selection line: `<id>\\t<preview>`."""
        return f"{self.entry_id}\t{self.preview}"


# =============================================================================
# Configuration
# =============================================================================


class Config(BaseModel):
    """
    clipkeep settings.

    Attributes:
        db_path: Location of the SQLite database file
        max_entries: Capacity; oldest entries are evicted beyond it
        max_entry_age: Seconds after which entries are pruned (None = never)
        min_entry_length: Payloads shorter than this many bytes are not stored
        max_entry_length: Payloads longer than this many bytes are not stored
        ignore_pattern: Regex; matching text payloads are not stored
        preview_width: Default preview width for `list`
        lock_timeout: Seconds to wait for the database write lock
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    db_path: Path = Field(default_factory=default_db_path, description="Database file")
    max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, description="Capacity", gt=0)
    max_entry_age: float | None = Field(
        default=None,
        description="Seconds after which entries are pruned",
        gt=0,
    )
    min_entry_length: int = Field(default=1, description="Minimum payload size", ge=0)
    max_entry_length: int = Field(
        default=DEFAULT_MAX_ENTRY_LENGTH,
        description="Maximum payload size",
        gt=0,
    )
    ignore_pattern: str | None = Field(default=None, description="Regex of text to skip")
    preview_width: int = Field(default=DEFAULT_PREVIEW_WIDTH, description="Preview width", gt=0)
    lock_timeout: float = Field(
        default=DEFAULT_LOCK_TIMEOUT,
        description="Seconds to wait for the write lock",
        gt=0,
    )

    @field_validator("ignore_pattern")
    @classmethod
    def validate_ignore_pattern(cls, v: str | None) -> str | None:
        """Ignore pattern must compile."""
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid ignore_pattern: {e}") from e
        return v

    @field_validator("db_path")
    @classmethod
    def expand_db_path(cls, v: Path) -> Path:
        """Expand ~ in the database path."""
        return v.expanduser()


def load_config(
    path: Path | str | None = None,
    env: Mapping[str, str] = os.environ,
    **overrides: Any,
) -> Config:
    """
    Load configuration from YAML, environment and explicit overrides.

    Precedence (highest first): keyword overrides, environment variables,
    the YAML file, built-in defaults. When `path` is None the default config
    file is read if it exists.

    Args:
        path: YAML config file
        env: Environment mapping to read overrides from
        **overrides: Field values that win over everything else (None is skipped)

    Returns:
        Validated Config object

    Raises:
        ConfigError: If the file is unreadable or a value fails validation
    """
    data: dict[str, Any] = {}

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise ConfigError(
                message=f"Config file not found: {config_path}",
                source=str(config_path),
            )
    else:
        config_path = default_config_path(env)

    source = str(config_path)
    if config_path.exists():
        try:
            with config_path.open() as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                message=f"Cannot read config file {config_path}: {e}",
                source=source,
            ) from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(
                message=f"Config file {config_path} must contain a mapping",
                source=source,
            )
        data.update(loaded or {})

    for var, field_name in ENV_OVERRIDES.items():
        if env.get(var):
            data[field_name] = env[var]
            source = f"{source} + ${var}"

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(message=f"Invalid configuration: {e}", source=source) from e
