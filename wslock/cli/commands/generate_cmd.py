import asyncio
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape

from wslock.cli._console import get_console, resolve_directory
from wslock.cli.commands._project_helpers import load_config_or_exit, load_project_or_exit
from wslock.pipeline import TargetResult, TargetStatus, generate_workspace_lockfiles_async
from wslock.workspace.exceptions import ManifestValidationError, WorkspaceNotFoundError


class ConsoleReporter:
    """Prints one line per workspace as soon as its lockfile is written or fails."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def report(self, result: TargetResult) -> None:
        match result.status:
            case TargetStatus.WRITTEN:
                self.console.print(f"[green]✓ Wrote {escape(str(result.lockfile_path))}[/green]")
            case TargetStatus.FAILED:
                self.console.print(
                    f"[red]✗ {escape(result.workspace)}: {escape(result.error_kind or 'Error')}: {escape(result.error_message or '')}[/red]"
                )
                if result.recovery_needed:
                    self.console.print(f"[yellow]  Manual recovery needed in '{escape(result.relative_cwd)}'[/yellow]")
            case TargetStatus.SKIPPED:
                self.console.print(f"[dim]- {escape(result.workspace)}: skipped after an earlier failure[/dim]")


def do_generate(
    directory: str | None = None,
    workspaces: list[str] | None = None,
    filename: str | None = None,
    jobs: int | None = None,
    fail_fast: bool | None = None,
    reuse: bool = True,
) -> None:
    """Write one lockfile per selected workspace of the monorepo.

    Args:
        directory: Monorepo root (defaults to current directory)
        workspaces: Workspace names to generate for, instead of the configured list
        filename: Name of the per-workspace lockfile
        jobs: Maximum number of workspaces processed concurrently
        fail_fast: Stop starting new workspaces after the first failure
        reuse: Reuse the root lockfile (or a root resolution) for every workspace
    """
    console = get_console()
    cwd = resolve_directory(directory)
    project = load_project_or_exit(console, cwd)

    overrides: dict[str, Any] = {
        "workspace_lockfiles": workspaces or None,
        "workspace_lockfile_filename": filename,
        "jobs": jobs,
        "fail_fast": fail_fast,
    }
    config = load_config_or_exit(console, project.cwd, overrides=overrides)

    try:
        report = asyncio.run(generate_workspace_lockfiles_async(project, config, reporter=ConsoleReporter(console), reuse=reuse))
    except (WorkspaceNotFoundError, ManifestValidationError) as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc

    if not report.ok:
        console.print(f"[red]{len(report.failed)} of {len(report.results)} workspace lockfile(s) failed.[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]Wrote {len(report.written)} workspace lockfile(s).[/green]")
