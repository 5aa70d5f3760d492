"""
CLI entry point for clipkeep.

This module provides the Typer-based command-line interface for clipkeep.

Commands:
    store    Read clipboard content from stdin and store it
    list     List history as `<id>\\t<preview>` lines
    get      Write an entry's raw content to stdout
    delete   Delete an entry by selection line, index or content
    clear    Delete every entry
    info     Show database location, schema revision and entry count

Typical wiring:
    $ wl-paste --watch clipkeep store
    $ clipkeep list | fzf | clipkeep get | wl-copy

The CLI only parses arguments and renders output; the history engine does
the work, so every command can also be used programmatically.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from clipkeep import __version__
from clipkeep.engine import ClipboardHistory
from clipkeep.errors import ClipKeepError
from clipkeep.schema import load_config

app = typer.Typer(
    name="clipkeep",
    help="Keep a local, private history of clipboard contents.",
    add_completion=False,
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# stdout carries clipboard data, so all human-facing output goes to stderr
console = Console(stderr=True)


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]clipkeep[/bold] version {__version__}")
        raise typer.Exit()


def _fail(error: ClipKeepError, json_output: bool = False) -> None:
    if json_output:
        print(json.dumps({"ok": False, "error": error.to_dict()}, indent=2))
    else:
        console.print(f"[red]Error: {error}[/red]", highlight=False)
    raise typer.Exit(code=error.exit_code)


def _history(ctx: typer.Context) -> ClipboardHistory:
    return ctx.obj


def _read_stdin_line() -> str:
    if sys.stdin.isatty():
        return ""
    return sys.stdin.readline()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging on stderr."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a YAML config file.",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ] = None,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to the history database.", dir_okay=False),
    ] = None,
    max_entries: Annotated[
        Optional[int],
        typer.Option("--max-entries", "-n", help="Maximum number of entries to keep.", min=1),
    ] = None,
) -> None:
    """
    clipkeep - a private, bounded clipboard history.

    Entries are stored in a SQLite database readable only by you.
    """
    configure_logging(verbose)
    try:
        config = load_config(config_path, db_path=db, max_entries=max_entries)
    except ClipKeepError as e:
        _fail(e)
    ctx.obj = ClipboardHistory(config)


@app.command()
def store(ctx: typer.Context) -> None:
    """
    Store clipboard content read from stdin.

    Content identical to an existing entry moves that entry to the top
    instead of adding a duplicate.

    Example:
        $ wl-paste --watch clipkeep store
    """
    content = sys.stdin.buffer.read()
    try:
        result = _history(ctx).store(content)
    except ClipKeepError as e:
        _fail(e)
    if not result.stored:
        logger.debug("Skipped: %s", result.skipped_reason)


@app.command("list")
def list_entries(
    ctx: typer.Context,
    width: Annotated[
        Optional[int],
        typer.Option("--width", "-w", help="Maximum preview width in characters.", min=1),
    ] = None,
    reverse: Annotated[
        bool,
        typer.Option("--reverse", "-r", help="Show oldest entries first."),
    ] = False,
    table: Annotated[
        bool,
        typer.Option("--table", help="Render a table instead of selection lines."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output entries in JSON format."),
    ] = False,
) -> None:
    """
    List stored entries, most recent first.

    Each line is `<id><TAB><preview>` and can be piped back into
    `clipkeep get` or `clipkeep delete`.

    Example:
        $ clipkeep list --width 60 | fzf | clipkeep get
    """
    try:
        previews = _history(ctx).list_entries(width=width, reverse=reverse)
    except ClipKeepError as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps([p.model_dump() for p in previews], indent=2, ensure_ascii=False))
        return

    if table:
        if not previews:
            console.print("[dim]No entries.[/dim]")
            return
        out = Console()
        grid = Table(show_header=True, header_style="bold")
        grid.add_column("Index", justify="right", style="dim")
        grid.add_column("ID", style="cyan")
        grid.add_column("Preview", overflow="ellipsis")
        for p in previews:
            grid.add_row(str(p.index), str(p.entry_id), p.preview)
        out.print(grid)
        return

    for p in previews:
        typer.echo(p.to_line())


@app.command()
def get(
    ctx: typer.Context,
    line: Annotated[
        Optional[str],
        typer.Argument(help="Selection line from `clipkeep list` (read from stdin if omitted)."),
    ] = None,
    index: Annotated[
        Optional[int],
        typer.Option("--index", "-i", help="Recency index: 0 is newest, -1 is oldest."),
    ] = None,
) -> None:
    """
    Write an entry's raw content to stdout.

    With no selection line and no index, the most recent entry is returned.

    Example:
        $ clipkeep get --index 1 | wl-copy
    """
    if line is not None and index is not None:
        raise typer.BadParameter("Pass either a selection line or --index, not both.")

    history = _history(ctx)
    try:
        if index is not None:
            content = history.get(index)
        else:
            selection = line if line is not None else _read_stdin_line()
            content = history.get_selection(selection) if selection.strip() else history.get(0)
    except ClipKeepError as e:
        _fail(e)

    sys.stdout.buffer.write(content)
    sys.stdout.flush()


@app.command()
def delete(
    ctx: typer.Context,
    line: Annotated[
        Optional[str],
        typer.Argument(help="Selection line from `clipkeep list` (read from stdin if omitted)."),
    ] = None,
    index: Annotated[
        Optional[int],
        typer.Option("--index", "-i", help="Recency index: 0 is newest, -1 is oldest."),
    ] = None,
    content: Annotated[
        bool,
        typer.Option("--content", help="Delete the entry whose content equals stdin."),
    ] = False,
) -> None:
    """
    Delete an entry.

    Example:
        $ clipkeep list | fzf | clipkeep delete
    """
    if sum([line is not None, index is not None, content]) > 1:
        raise typer.BadParameter("Pass only one of a selection line, --index or --content.")

    history = _history(ctx)
    try:
        if index is not None:
            deleted = history.delete(index)
        elif content:
            deleted = history.delete(sys.stdin.buffer.read())
        else:
            selection = line if line is not None else _read_stdin_line()
            if not selection.strip():
                raise typer.BadParameter("Nothing selected: pass a selection line or --index.")
            deleted = history.delete_selection(selection)
    except ClipKeepError as e:
        _fail(e)

    console.print(f"[dim]Deleted {deleted} entr{'y' if deleted == 1 else 'ies'}[/dim]")


@app.command()
def clear(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation."),
    ] = False,
) -> None:
    """Delete every entry."""
    if not yes:
        typer.confirm("Delete the whole clipboard history?", abort=True, err=True)
    try:
        deleted = _history(ctx).clear()
    except ClipKeepError as e:
        _fail(e)
    console.print(f"[dim]Deleted {deleted} entr{'y' if deleted == 1 else 'ies'}[/dim]")


@app.command()
def info(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """Show database location, schema revision and entry count."""
    try:
        stats = _history(ctx).stats()
    except ClipKeepError as e:
        _fail(e, json_output)

    if json_output:
        print(json.dumps({
            "ok": True,
            "version": __version__,
            "db_path": str(stats.db_path),
            "schema_version": stats.schema_version,
            "latest_version": stats.latest_version,
            "entries": stats.entries,
            "max_entries": stats.max_entries,
        }, indent=2))
        return

    out = Console()
    out.print(f"[bold]clipkeep[/bold] v{__version__}")
    out.print(f"  Database: [cyan]{stats.db_path}[/cyan]")
    out.print(f"  Schema revision: {stats.schema_version}/{stats.latest_version}")
    out.print(f"  Entries: {stats.entries}/{stats.max_entries}")


if __name__ == "__main__":
    app()
