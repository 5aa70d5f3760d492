"""
Unit tests for the history engine.

Tests cover:
- Store filters
- Age pruning on store
- Selection line parsing
- Read and delete operations through fresh connections
- Stats
"""

import sqlite3
from pathlib import Path

import pytest

from clipkeep.engine import ClipboardHistory, parse_selection
from clipkeep.errors import EmptyStoreError, EntryNotFoundError, SelectionParseError
from clipkeep.schema import Config


@pytest.fixture
def history(config: Config) -> ClipboardHistory:
    """History over the temporary database, capacity 3."""
    return ClipboardHistory(config)


class TestParseSelection:
    """Tests for selection line parsing."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("12\thello world", 12),
            ("12", 12),
            ("7\t\n", 7),
            ("  3\tpadded", 3),
        ],
    )
    def test_valid(self, line: str, expected: int) -> None:
        """Lines starting with an id parse."""
        assert parse_selection(line) == expected

    @pytest.mark.parametrize("line", ["", "abc", "12 hello", "0\tzero", "-1\tneg", "\thello"])
    def test_invalid(self, line: str) -> None:
        """Lines without a leading positive id are rejected."""
        with pytest.raises(SelectionParseError):
            parse_selection(line)


class TestStoreFilters:
    """Tests for store filtering."""

    def test_stores_normal_content(self, history: ClipboardHistory) -> None:
        """Ordinary content is stored."""
        result = history.store(b"hello")
        assert result.stored
        assert result.skipped_reason is None
        assert history.get(0) == b"hello"

    @pytest.mark.parametrize("content", [b"", b"   ", b"\n\t\n"])
    def test_skips_blank(self, history: ClipboardHistory, content: bytes) -> None:
        """Empty and whitespace-only payloads are skipped."""
        result = history.store(content)
        assert not result.stored
        assert result.entry_id is None

    def test_skips_short(self, db_path: Path) -> None:
        """Payloads under min_entry_length are skipped."""
        history = ClipboardHistory(Config(db_path=db_path, min_entry_length=4))
        assert history.store(b"abc").skipped_reason == "shorter than 4 bytes"
        assert history.store(b"abcd").stored

    def test_skips_long(self, db_path: Path) -> None:
        """Payloads over max_entry_length are skipped."""
        history = ClipboardHistory(Config(db_path=db_path, max_entry_length=5))
        assert history.store(b"123456").skipped_reason == "longer than 5 bytes"

    def test_skips_ignored_pattern(self, db_path: Path) -> None:
        """Text matching the ignore pattern is skipped."""
        history = ClipboardHistory(Config(db_path=db_path, ignore_pattern=r"^password:"))
        assert history.store(b"password: hunter2").skipped_reason == "matches ignore pattern"
        assert history.store(b"just text").stored

    def test_ignore_pattern_skips_binary_check(self, db_path: Path) -> None:
        """Binary payloads are not matched against the ignore pattern."""
        history = ClipboardHistory(Config(db_path=db_path, ignore_pattern=r"."))
        assert history.store(b"\xff\xfe").stored

    def test_skipped_store_does_not_create_database(self, history: ClipboardHistory) -> None:
        """Nothing touches the disk when the payload is skipped."""
        history.store(b"   ")
        assert not history.db_path.exists()


class TestAgePruning:
    """Tests for max_entry_age pruning."""

    def test_prunes_expired_on_store(self, db_path: Path) -> None:
        """Entries older than max_entry_age go away on the next store."""
        history = ClipboardHistory(Config(db_path=db_path, max_entry_age=60))
        history.store(b"stale")

        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE entries SET last_seen_at = '2000-01-01T00:00:00.000000+00:00'")
        conn.commit()
        conn.close()

        result = history.store(b"fresh")
        assert result.pruned == 1
        assert [p.preview for p in history.list_entries()] == ["fresh"]

    def test_no_pruning_without_age(self, history: ClipboardHistory) -> None:
        """Without max_entry_age nothing is pruned."""
        history.store(b"a")
        assert history.store(b"b").pruned == 0


class TestReadAndDelete:
    """Tests for reading and deleting through the engine."""

    def test_list_uses_configured_width(self, history: ClipboardHistory) -> None:
        """The config preview width applies when none is given."""
        history.store(b"x" * 50)
        assert len(history.list_entries()[0].preview) == 20
        assert len(history.list_entries(width=10)[0].preview) == 10

    def test_capacity_from_config(self, history: ClipboardHistory) -> None:
        """The configured capacity is enforced."""
        for i in range(5):
            history.store(str(i).encode())
        assert [p.preview for p in history.list_entries()] == ["4", "3", "2"]

    def test_list_on_missing_database(self, history: ClipboardHistory) -> None:
        """Listing before anything is stored bootstraps an empty store."""
        assert history.list_entries() == []
        assert history.db_path.exists()

    def test_get_on_missing_database(self, history: ClipboardHistory) -> None:
        """Get before anything is stored is an empty-store error."""
        with pytest.raises(EmptyStoreError):
            history.get(0)

    def test_get_selection(self, history: ClipboardHistory) -> None:
        """Selection lines from list resolve to content."""
        history.store(b"first")
        history.store(b"second")
        line = history.list_entries()[1].to_line()
        assert history.get_selection(line) == b"first"

    def test_get_selection_missing(self, history: ClipboardHistory) -> None:
        """Selections of deleted entries raise EntryNotFoundError."""
        history.store(b"x")
        with pytest.raises(EntryNotFoundError):
            history.get_selection("999\tgone")

    def test_delete_selection(self, history: ClipboardHistory) -> None:
        """Deleting a selection removes that entry."""
        history.store(b"keep")
        history.store(b"drop")
        line = history.list_entries()[0].to_line()
        assert history.delete_selection(line) == 1
        assert [p.preview for p in history.list_entries()] == ["keep"]

    def test_delete_index_and_content(self, history: ClipboardHistory) -> None:
        """Delete accepts an index or content."""
        history.store(b"a")
        history.store(b"b")
        history.store(b"c")
        assert history.delete(-1) == 1
        assert history.delete(b"c") == 1
        assert history.delete(b"zzz") == 0
        assert [p.preview for p in history.list_entries()] == ["b"]

    def test_clear(self, history: ClipboardHistory) -> None:
        """Clear empties the history."""
        history.store(b"a")
        assert history.clear() == 1
        assert history.list_entries() == []

    def test_stats(self, history: ClipboardHistory) -> None:
        """Stats report revision, count and capacity."""
        history.store(b"a")
        stats = history.stats()
        assert stats.entries == 1
        assert stats.max_entries == 3
        assert stats.schema_version == stats.latest_version == 3
