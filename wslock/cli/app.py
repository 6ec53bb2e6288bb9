"""wslock CLI.

Generates one lockfile per workspace of a monorepo, restricted to what that
workspace transitively needs.
"""

from typing import Annotated

import typer

from wslock.cli.commands.closure_cmd import do_closure
from wslock.cli.commands.config_cmd import do_config_get, do_config_list
from wslock.cli.commands.generate_cmd import do_generate

app = typer.Typer(
    name="wslock",
    no_args_is_help=True,
    help="wslock: per-workspace lockfiles for monorepos.",
)

# ── Config subcommand group ──────────────────────────────────────────
config_app = typer.Typer(
    name="config",
    no_args_is_help=True,
    help="Inspect wslock configuration.",
)
app.add_typer(config_app, name="config")


@config_app.command("get", help="Get a configuration value")
def config_get_cmd(
    key: Annotated[
        str,
        typer.Argument(help="Configuration key (e.g. 'jobs', 'workspaceLockfiles')"),
    ],
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Monorepo root (defaults to current directory)"),
    ] = None,
) -> None:
    """Get a configuration value and its source."""
    do_config_get(key=key, directory=directory)


@config_app.command("list", help="List all configuration values")
def config_list_cmd(
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Monorepo root (defaults to current directory)"),
    ] = None,
) -> None:
    """List all configuration values with their sources."""
    do_config_list(directory=directory)


# ── Top-level commands ───────────────────────────────────────────────


@app.command("generate", help="Write a lockfile for each configured workspace")
def generate_cmd(
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Monorepo root (defaults to current directory)"),
    ] = None,
    workspaces: Annotated[
        list[str] | None,
        typer.Option("--workspace", "-w", help="Workspace to generate for (repeatable, overrides configuration)"),
    ] = None,
    filename: Annotated[
        str | None,
        typer.Option("--filename", "-f", help="Per-workspace lockfile name"),
    ] = None,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Workspaces processed concurrently"),
    ] = None,
    fail_fast: Annotated[
        bool | None,
        typer.Option("--fail-fast/--no-fail-fast", help="Stop after the first failing workspace"),
    ] = None,
    no_reuse: Annotated[
        bool,
        typer.Option("--no-reuse", help="Resolve every workspace from scratch instead of reusing the root lockfile"),
    ] = False,
) -> None:
    """Generate per-workspace lockfiles."""
    do_generate(
        directory=directory,
        workspaces=workspaces,
        filename=filename,
        jobs=jobs,
        fail_fast=fail_fast,
        reuse=not no_reuse,
    )


@app.command("closure", help="Show the workspaces a workspace transitively depends on")
def closure_cmd(
    workspace: Annotated[
        str,
        typer.Argument(help="Workspace name (e.g. '@acme/web')"),
    ],
    directory: Annotated[
        str | None,
        typer.Option("--directory", "-d", help="Monorepo root (defaults to current directory)"),
    ] = None,
) -> None:
    """Show a workspace closure."""
    do_closure(workspace=workspace, directory=directory)
