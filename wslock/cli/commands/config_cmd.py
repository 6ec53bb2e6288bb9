"""Config commands: show the effective wslock options and where each comes from."""

import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from wslock.cli._console import get_console, resolve_directory
from wslock.config import list_config
from wslock.workspace.exceptions import ConfigError


def do_config_list(directory: str | None = None) -> None:
    """List every option with its value and source.

    Args:
        directory: Monorepo root holding ``wslock.toml`` (defaults to current directory)
    """
    console = get_console()
    cwd = resolve_directory(directory)

    try:
        entries = list_config(cwd)
    except ConfigError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title="wslock Configuration", box=box.ROUNDED, show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_column("Source", style="dim")

    for entry in entries:
        empty_label = "(all)" if entry.key == "workspaceLockfiles" else "(empty)"
        display_value = entry.value or empty_label
        table.add_row(entry.key, escape(display_value), str(entry.source))

    console.print(table)


def do_config_get(key: str, directory: str | None = None) -> None:
    """Show one option with its source.

    Args:
        key: Option name as written in ``wslock.toml`` (e.g. ``jobs``)
        directory: Monorepo root holding ``wslock.toml`` (defaults to current directory)
    """
    console = get_console()
    cwd = resolve_directory(directory)

    try:
        entries = {entry.key: entry for entry in list_config(cwd)}
    except ConfigError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc

    entry = entries.get(key)
    if entry is None:
        console.print(f"[red]Unknown config key: '{escape(key)}'[/red]")
        console.print(f"[dim]Valid keys: {', '.join(entries)}[/dim]")
        raise typer.Exit(code=1)

    console.print(f"[bold]{escape(key)}[/bold] = {escape(entry.value or '(empty)')}  [dim](source: {entry.source})[/dim]")
