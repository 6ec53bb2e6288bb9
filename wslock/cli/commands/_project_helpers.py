"""Shared helpers for commands that load the project and its configuration."""

from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from wslock.config import WslockConfig, load_config
from wslock.workspace.exceptions import ConfigError, ManifestError
from wslock.workspace.project import Project, load_project


def load_project_or_exit(console: Console, cwd: Path) -> Project:
    """Load the project rooted at cwd, or exit with an error message."""
    try:
        return load_project(cwd)
    except ManifestError as exc:
        console.print(f"[red]Could not load the workspace project: {escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
    except OSError as exc:
        console.print(f"[red]Could not read the workspace project: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def load_config_or_exit(console: Console, project_root: Path, overrides: dict[str, Any] | None = None) -> WslockConfig:
    """Load the effective configuration, or exit with an error message."""
    try:
        return load_config(project_root, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc
