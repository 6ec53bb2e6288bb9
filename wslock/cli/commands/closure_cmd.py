import typer
from rich import box
from rich.markup import escape
from rich.table import Table

from wslock.cli._console import get_console, resolve_directory
from wslock.cli.commands._project_helpers import load_project_or_exit
from wslock.workspace.closure import compute_closure
from wslock.workspace.exceptions import ManifestValidationError, WorkspaceNotFoundError


def do_closure(workspace: str, directory: str | None = None) -> None:
    """Show the workspaces a workspace transitively needs.

    Args:
        workspace: Name of the workspace
        directory: Monorepo root (defaults to current directory)
    """
    console = get_console()
    cwd = resolve_directory(directory)
    project = load_project_or_exit(console, cwd)

    try:
        target = project.get_workspace_by_ident(workspace)
    except (WorkspaceNotFoundError, ManifestValidationError) as exc:
        console.print(f"[red]{escape(exc.message)}[/red]")
        raise typer.Exit(code=1) from exc

    closure = compute_closure(project, target)

    table = Table(title=f"Closure of {escape(str(target.ident))}", box=box.ROUNDED, show_header=True)
    table.add_column("Workspace", style="cyan")
    table.add_column("Path")
    table.add_column("Version", style="dim")

    for member in sorted(closure, key=lambda ws: ws.relative_cwd):
        table.add_row(escape(str(member.ident)), escape(member.relative_cwd), escape(member.manifest.version or ""))

    console.print(table)
