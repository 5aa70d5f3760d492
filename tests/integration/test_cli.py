"""
Integration tests for the clipkeep CLI.

Tests cover:
- store / list / get round trips through stdin and stdout
- Selection lines piped back into get and delete
- delete, clear and info commands
- Exit codes for each error kind
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from clipkeep import __version__
from clipkeep.cli import app
from clipkeep.errors import (
    ERROR_EMPTY_STORE,
    ERROR_ENTRY_NOT_FOUND,
    ERROR_INDEX_OUT_OF_RANGE,
    ERROR_SELECTION_INVALID,
    EXIT_CODES,
)

runner = CliRunner()


@pytest.fixture
def invoke(temp_dir: Path, db_path: Path):
    """Invoke the CLI against the temporary database, isolated from user config."""
    env = {
        "XDG_CONFIG_HOME": str(temp_dir / "config"),
        "CLIPKEEP_DB": None,
        "CLIPKEEP_MAX_ENTRIES": None,
        "CLIPKEEP_MAX_ENTRY_AGE": None,
    }

    def _invoke(*args: str, input: bytes | str | None = None):
        return runner.invoke(app, ["--db", str(db_path), *args], input=input, env=env)

    return _invoke


class TestStoreListGet:
    """Tests for the main workflow."""

    def test_version(self) -> None:
        """--version prints the version and exits cleanly."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_store_then_list(self, invoke) -> None:
        """Stored content shows up as a selection line."""
        assert invoke("store", input=b"hello").exit_code == 0
        result = invoke("list")
        assert result.exit_code == 0
        assert result.stdout == "1\thello\n"

    def test_list_empty(self, invoke, db_path: Path) -> None:
        """Listing a new database prints nothing and creates the file."""
        result = invoke("list")
        assert result.exit_code == 0
        assert result.stdout == ""
        assert db_path.exists()

    def test_list_order_and_width(self, invoke) -> None:
        """Newest first, truncated to --width."""
        invoke("store", input=b"first entry")
        invoke("store", input=b"second entry")
        result = invoke("list", "--width", "6")
        assert result.stdout.splitlines() == ["2\tsecon…", "1\tfirst…"]

    def test_list_reverse(self, invoke) -> None:
        """--reverse prints oldest first."""
        invoke("store", input=b"a")
        invoke("store", input=b"b")
        result = invoke("list", "--reverse")
        assert result.stdout.splitlines() == ["1\ta", "2\tb"]

    def test_list_json(self, invoke) -> None:
        """--json emits preview objects."""
        invoke("store", input=b"a")
        result = invoke("list", "--json")
        data = json.loads(result.stdout)
        assert data == [{"index": 0, "entry_id": 1, "preview": "a"}]

    def test_list_table(self, invoke) -> None:
        """--table renders a table containing the preview."""
        invoke("store", input=b"tabled")
        result = invoke("list", "--table")
        assert result.exit_code == 0
        assert "tabled" in result.stdout

    def test_duplicate_store(self, invoke) -> None:
        """Storing the same content twice keeps one entry, moved to the top."""
        invoke("store", input=b"same")
        invoke("store", input=b"other")
        invoke("store", input=b"same")
        assert invoke("list").stdout.splitlines() == ["1\tsame", "2\tother"]

    def test_blank_input_not_stored(self, invoke) -> None:
        """Whitespace-only input is ignored."""
        assert invoke("store", input=b"  \n").exit_code == 0
        assert invoke("list").stdout == ""

    def test_capacity_option(self, invoke) -> None:
        """--max-entries bounds the history."""
        for word in ("a", "b", "c"):
            invoke("--max-entries", "2", "store", input=word)
        assert invoke("list").stdout.splitlines() == ["3\tc", "2\tb"]

    def test_get_index(self, invoke) -> None:
        """get --index writes raw content to stdout."""
        invoke("store", input=b"old")
        invoke("store", input=b"new")
        assert invoke("get", "--index", "0").stdout_bytes == b"new"
        assert invoke("get", "--index", "-1").stdout_bytes == b"old"

    def test_get_default_newest(self, invoke) -> None:
        """get with no selection returns the newest entry."""
        invoke("store", input=b"old")
        invoke("store", input=b"new")
        assert invoke("get").stdout_bytes == b"new"

    def test_get_selection_argument(self, invoke) -> None:
        """A selection line argument resolves by id."""
        invoke("store", input=b"old")
        invoke("store", input=b"new")
        line = invoke("list").stdout.splitlines()[1]
        assert invoke("get", line).stdout_bytes == b"old"

    def test_get_selection_stdin(self, invoke) -> None:
        """A selection line on stdin resolves by id."""
        invoke("store", input=b"old")
        invoke("store", input=b"new")
        assert invoke("get", input="1\told\n").stdout_bytes == b"old"

    def test_binary_roundtrip(self, invoke) -> None:
        """Binary payloads come back byte for byte."""
        payload = bytes(range(256))
        invoke("store", input=payload)
        assert invoke("get", "--index", "0").stdout_bytes == payload
        assert "binary data" in invoke("list").stdout

    def test_get_with_line_and_index(self, invoke) -> None:
        """A line and --index together are a usage error."""
        result = invoke("get", "1\tx", "--index", "0")
        assert result.exit_code == 2


class TestDeleteClearInfo:
    """Tests for mutation and inspection commands."""

    def test_delete_index(self, invoke) -> None:
        """delete --index removes the entry."""
        invoke("store", input=b"a")
        invoke("store", input=b"b")
        assert invoke("delete", "--index", "0").exit_code == 0
        assert invoke("list").stdout.splitlines() == ["1\ta"]

    def test_delete_selection(self, invoke) -> None:
        """delete accepts a selection line on stdin."""
        invoke("store", input=b"a")
        invoke("store", input=b"b")
        assert invoke("delete", input="1\ta\n").exit_code == 0
        assert invoke("list").stdout.splitlines() == ["2\tb"]

    def test_delete_content(self, invoke) -> None:
        """delete --content matches stdin exactly."""
        invoke("store", input=b"a")
        invoke("store", input=b"b")
        assert invoke("delete", "--content", input=b"a").exit_code == 0
        assert invoke("list").stdout.splitlines() == ["2\tb"]

    def test_delete_nothing_selected(self, invoke) -> None:
        """delete without any selector is a usage error."""
        assert invoke("delete").exit_code == 2

    def test_clear(self, invoke) -> None:
        """clear --yes empties the history."""
        invoke("store", input=b"a")
        assert invoke("clear", "--yes").exit_code == 0
        assert invoke("list").stdout == ""

    def test_clear_declined(self, invoke) -> None:
        """Declining the prompt keeps the history."""
        invoke("store", input=b"a")
        result = invoke("clear", input="n\n")
        assert result.exit_code != 0
        assert invoke("list").stdout == "1\ta\n"

    def test_info_json(self, invoke, db_path: Path) -> None:
        """info --json reports the database state."""
        invoke("store", input=b"a")
        data = json.loads(invoke("info", "--json").stdout)
        assert data["ok"] is True
        assert data["db_path"] == str(db_path)
        assert data["entries"] == 1
        assert data["schema_version"] == data["latest_version"]


class TestExitCodes:
    """Tests for error exit codes."""

    def test_empty_store(self, invoke) -> None:
        """get on an empty history exits with the empty-store code."""
        result = invoke("get", "--index", "0")
        assert result.exit_code == EXIT_CODES[ERROR_EMPTY_STORE]

    def test_index_out_of_range(self, invoke) -> None:
        """Out-of-range indexes exit with their own code."""
        invoke("store", input=b"a")
        assert invoke("get", "--index", "1").exit_code == EXIT_CODES[ERROR_INDEX_OUT_OF_RANGE]
        assert invoke("get", "--index", "-2").exit_code == EXIT_CODES[ERROR_INDEX_OUT_OF_RANGE]
        assert invoke("delete", "--index", "5").exit_code == EXIT_CODES[ERROR_INDEX_OUT_OF_RANGE]

    def test_unknown_selection(self, invoke) -> None:
        """Selections of missing entries exit with the not-found code."""
        invoke("store", input=b"a")
        assert invoke("get", "42\tnope").exit_code == EXIT_CODES[ERROR_ENTRY_NOT_FOUND]

    def test_bad_selection(self, invoke) -> None:
        """Unparseable selections exit with the selection code."""
        invoke("store", input=b"a")
        assert invoke("get", "garbage").exit_code == EXIT_CODES[ERROR_SELECTION_INVALID]

    def test_invalid_capacity(self, invoke) -> None:
        """--max-entries must be positive."""
        assert invoke("--max-entries", "0", "list").exit_code == 2
