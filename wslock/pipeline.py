"""Generate one scoped lockfile per selected workspace.

For each target: closure -> resolve/fetch (reusing the root run) -> scope
extraction -> serialization -> swap-publish. Targets are independent units of
work: a failing target is reported and the batch goes on, unless ``fail_fast``
is configured.
"""

from __future__ import annotations

import asyncio
import logging
from enum import unique
from pathlib import Path
from typing import Protocol

import httpx
from pydantic import BaseModel, ConfigDict

from wslock._compat import StrEnum
from wslock.config import WslockConfig, load_config
from wslock.lockfile.scope import extract_scope
from wslock.lockfile.serializer import generate_lockfile, lockfile_to_snapshot, parse_lockfile, serialize_lockfile
from wslock.lockfile.swap import DirectoryLocks, publish_serialized
from wslock.resolution.adapter import build_root_snapshot, ensure_resolved
from wslock.resolution.npm_registry import NpmRegistryResolver, TarballFetcher
from wslock.resolution.protocols import FetcherProtocol, ResolverProtocol
from wslock.resolution.resolvers import MultiResolver, WorkspaceResolver
from wslock.resolution.snapshot import ResolutionSnapshot
from wslock.workspace.closure import compute_closure
from wslock.workspace.exceptions import FetchError, LockFileError, ResolutionError, WslockError
from wslock.workspace.project import Project, Workspace, load_project

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 60


@unique
class TargetStatus(StrEnum):
    WRITTEN = "written"
    FAILED = "failed"
    SKIPPED = "skipped"


class TargetResult(BaseModel):
    """Outcome of one workspace."""

    model_config = ConfigDict(frozen=True)

    workspace: str
    relative_cwd: str
    status: TargetStatus
    lockfile_path: Path | None = None
    error_kind: str | None = None
    error_message: str | None = None
    recovery_needed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == TargetStatus.WRITTEN


class BatchReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: tuple[TargetResult, ...] = ()

    @property
    def written(self) -> list[TargetResult]:
        return [result for result in self.results if result.status == TargetStatus.WRITTEN]

    @property
    def failed(self) -> list[TargetResult]:
        return [result for result in self.results if result.status == TargetStatus.FAILED]

    @property
    def ok(self) -> bool:
        return all(result.succeeded for result in self.results)


class ReporterProtocol(Protocol):
    """Sink for per-workspace progress lines."""

    def report(self, result: TargetResult) -> None: ...


class LoggingReporter:
    """Default sink: one log line per workspace."""

    def report(self, result: TargetResult) -> None:
        match result.status:
            case TargetStatus.WRITTEN:
                logger.info("Wrote %s", result.lockfile_path)
            case TargetStatus.FAILED:
                logger.error("%s: %s: %s", result.workspace, result.error_kind, result.error_message)
            case TargetStatus.SKIPPED:
                logger.warning("%s: skipped after an earlier failure", result.workspace)


def select_targets(project: Project, config: WslockConfig) -> list[Workspace]:
    """Return the workspaces listed in ``workspace_lockfiles``, or all of them.

    Raises:
        WorkspaceNotFoundError: If a listed name is not a workspace of the project.
    """
    if config.workspace_lockfiles is None:
        return list(project.workspaces)
    return [project.get_workspace_by_ident(name) for name in config.workspace_lockfiles]


async def create_workspace_lockfile(
    project: Project,
    target: Workspace,
    resolver: ResolverProtocol,
    fetcher: FetcherProtocol,
    snapshot: ResolutionSnapshot | None = None,
) -> str:
    """Compute the lockfile text of one workspace. Writes nothing.

    Raises:
        WorkspaceNotFoundError: If ``target`` is not part of ``project``.
        ResolutionError: If a descriptor of the closure cannot be resolved.
        FetchError: If a package of the closure cannot be fetched.
        InvariantViolationError: If the resolution map misses the target itself.
    """
    closure = compute_closure(project, target)
    logger.debug("Closure of '%s': %s", target.ident, ", ".join(sorted(str(member.ident) for member in closure)))
    resolutions = await ensure_resolved(project, closure, resolver, fetcher, snapshot)
    view = extract_scope(project, closure, resolutions, target)
    return serialize_lockfile(generate_lockfile(view))


class WorkspaceLockfileWriter:
    """Runs lockfile generation over a batch of workspaces."""

    def __init__(
        self,
        project: Project,
        config: WslockConfig,
        resolver: ResolverProtocol,
        fetcher: FetcherProtocol,
        snapshot: ResolutionSnapshot | None = None,
        reporter: ReporterProtocol | None = None,
    ) -> None:
        self.project = project
        self.config = config
        self.resolver = resolver
        self.fetcher = fetcher
        self.snapshot = snapshot
        self.reporter: ReporterProtocol = reporter or LoggingReporter()
        self._locks = DirectoryLocks()
        self._aborted = False

    async def write_one(self, target: Workspace) -> TargetResult:
        """Generate and publish the lockfile of one workspace; failures become results."""
        try:
            content = await create_workspace_lockfile(self.project, target, self.resolver, self.fetcher, self.snapshot)
            lockfile_path = await publish_serialized(
                self._locks,
                target.cwd,
                self.config.canonical_lockfile_filename,
                self.config.workspace_lockfile_filename,
                content,
            )
        except WslockError as exc:
            return TargetResult(
                workspace=str(target.ident),
                relative_cwd=target.relative_cwd,
                status=TargetStatus.FAILED,
                error_kind=type(exc).__name__,
                error_message=exc.message,
                recovery_needed=bool(getattr(exc, "recovery_needed", False)),
            )
        return TargetResult(
            workspace=str(target.ident),
            relative_cwd=target.relative_cwd,
            status=TargetStatus.WRITTEN,
            lockfile_path=lockfile_path,
        )

    async def _run_target(self, target: Workspace, semaphore: asyncio.Semaphore) -> TargetResult:
        async with semaphore:
            if self._aborted:
                result = TargetResult(workspace=str(target.ident), relative_cwd=target.relative_cwd, status=TargetStatus.SKIPPED)
            else:
                result = await self.write_one(target)
                if not result.succeeded and self.config.fail_fast:
                    self._aborted = True
        self.reporter.report(result)
        return result

    async def write_all(self, targets: list[Workspace] | None = None) -> BatchReport:
        selected = targets if targets is not None else select_targets(self.project, self.config)
        semaphore = asyncio.Semaphore(self.config.jobs)
        results = await asyncio.gather(*(self._run_target(target, semaphore) for target in selected))
        return BatchReport(results=tuple(results))


def read_root_snapshot(project: Project, config: WslockConfig) -> ResolutionSnapshot | None:
    """Load the canonical monorepo lockfile as a reuse snapshot, if there is a usable one."""
    lockfile_path = project.cwd / config.canonical_lockfile_filename
    if not lockfile_path.is_file():
        return None
    try:
        return lockfile_to_snapshot(parse_lockfile(lockfile_path.read_text(encoding="utf-8")))
    except LockFileError as exc:
        logger.warning("Ignoring '%s' for reuse: %s", lockfile_path, exc.message)
        return None


async def generate_workspace_lockfiles_async(
    project: Project,
    config: WslockConfig,
    reporter: ReporterProtocol | None = None,
    reuse: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BatchReport:
    """Generate the lockfiles of the configured workspaces against the npm registry.

    Args:
        project: The loaded workspace graph.
        config: Explicit configuration.
        reporter: Progress sink (defaults to logging).
        reuse: Reuse the root lockfile, or a root run, for every workspace.
        transport: Custom httpx transport (e.g. for tests).
    """
    targets = select_targets(project, config)

    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, follow_redirects=True, transport=transport) as client:
        resolver = MultiResolver([WorkspaceResolver(project), NpmRegistryResolver(client, config.registry_url)])
        fetcher = TarballFetcher(client, config.registry_url, config.cache_folder)

        snapshot: ResolutionSnapshot | None = None
        if reuse:
            snapshot = read_root_snapshot(project, config)
            if snapshot is None:
                try:
                    snapshot = await build_root_snapshot(project, resolver, fetcher)
                except (ResolutionError, FetchError) as exc:
                    # Each workspace then resolves its own closure and fails on its own
                    logger.warning("Root resolution failed, resolving each workspace separately: %s", exc.message)

        writer = WorkspaceLockfileWriter(project, config, resolver, fetcher, snapshot=snapshot, reporter=reporter)
        return await writer.write_all(targets)


def generate_workspace_lockfiles(
    project_root: Path,
    config: WslockConfig | None = None,
    reporter: ReporterProtocol | None = None,
    reuse: bool = True,
) -> BatchReport:
    """Synchronous entry point: load the project and write every configured lockfile."""
    project = load_project(project_root)
    effective_config = config or load_config(project.cwd)
    return asyncio.run(generate_workspace_lockfiles_async(project, effective_config, reporter=reporter, reuse=reuse))
