# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Make sure every descriptor of a workspace closure is resolved and fetched.

Results of an earlier, complete run (the root run over the whole monorepo) are
reused from a snapshot; only what the snapshot lacks goes to the resolver and
fetcher. Workspaces are never reused: they are always read from the current
manifests. Any failure aborts the whole computation: callers either get a
complete snapshot or an exception, never a partial map.
"""

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from typing import Any, TypeVar

from wslock.resolution.protocols import FetcherProtocol, LinkType, ResolvedPackage, ResolverProtocol
from wslock.resolution.snapshot import ResolutionSnapshot
from wslock.workspace.exceptions import FetchError, ResolutionError
from wslock.workspace.project import Project, Workspace
from wslock.workspace.structures import Descriptor, Locator

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _gather_or_cancel(*coroutines: Coroutine[Any, Any, T]) -> list[T]:
    """Like ``asyncio.gather``, but the first failure cancels and awaits the remaining coroutines."""
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    try:
        return list(await asyncio.gather(*tasks))
    finally:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


class _ClosureResolution:
    """State of one resolve+fetch pass. Discarded once the snapshot is built."""

    def __init__(
        self,
        project: Project,
        closure: frozenset[Workspace],
        resolver: ResolverProtocol,
        fetcher: FetcherProtocol,
        reuse: ResolutionSnapshot,
    ) -> None:
        self.resolver = resolver
        self.fetcher = fetcher
        self.reuse = reuse
        self.excluded_workspaces: frozenset[Locator] = frozenset(
            workspace.anchored_locator for workspace in project.workspaces if workspace not in closure
        )
        self.resolutions: dict[Descriptor, Locator] = {}
        self.packages: dict[Locator, ResolvedPackage] = {}
        self.reused_count = 0

    def reusable_locator(self, descriptor: Descriptor) -> Locator | None:
        locator = self.reuse.get_locator(descriptor)
        if locator is None:
            return None
        package = self.reuse.get_package(locator)
        if package is not None and package.link_type == LinkType.SOFT:
            return None
        return locator

    async def resolve_descriptor(self, descriptor: Descriptor) -> Locator:
        reused = self.reusable_locator(descriptor)
        if reused is not None:
            self.reused_count += 1
            return reused
        if not self.resolver.supports(descriptor):
            msg = f"No resolver supports '{descriptor}'"
            raise ResolutionError(msg)
        locator = await self.resolver.resolve(descriptor)
        logger.debug("Resolved '%s' to '%s'", descriptor, locator)
        return locator

    async def complete_package(self, locator: Locator) -> ResolvedPackage:
        package = self.reuse.get_package(locator)
        # Workspace metadata always comes from the current manifests
        if package is None or package.link_type == LinkType.SOFT:
            package = await self.resolver.get_package(locator)
        if package.is_complete:
            return package
        checksum = await self.fetcher.fetch(package)
        if not checksum:
            msg = f"Fetching '{locator}' returned no checksum"
            raise FetchError(msg)
        logger.debug("Fetched '%s'", locator)
        return package.model_copy(update={"checksum": checksum})

    async def run(self, roots: Iterable[Descriptor]) -> ResolutionSnapshot:
        pending: list[Descriptor] = list(roots)

        while pending:
            batch = sorted({descriptor for descriptor in pending if descriptor not in self.resolutions}, key=str)
            pending = []
            if not batch:
                break

            locators = await _gather_or_cancel(*(self.resolve_descriptor(descriptor) for descriptor in batch))

            new_locators: list[Locator] = []
            for descriptor, locator in zip(batch, locators, strict=True):
                if locator in self.excluded_workspaces:
                    logger.debug("Skipping '%s': resolves to workspace '%s' outside the closure", descriptor, locator)
                    continue
                self.resolutions[descriptor] = locator
                if locator not in self.packages and locator not in new_locators:
                    new_locators.append(locator)

            packages = await _gather_or_cancel(*(self.complete_package(locator) for locator in new_locators))
            for package in packages:
                self.packages[package.locator] = package
                pending.extend(package.dependencies)

        return ResolutionSnapshot(resolutions=self.resolutions, packages=self.packages)


async def ensure_resolved(
    project: Project,
    closure: frozenset[Workspace],
    resolver: ResolverProtocol,
    fetcher: FetcherProtocol,
    snapshot: ResolutionSnapshot | None = None,
) -> ResolutionSnapshot:
    """Resolve and fetch everything the closure's workspaces depend on.

    Args:
        project: The whole workspace graph (read only).
        closure: The workspaces to resolve for.
        resolver: Resolver used for descriptors missing from ``snapshot``.
        fetcher: Fetcher used for hard-linked packages without a checksum.
        snapshot: Results of an earlier complete run to reuse, if any.

    Returns:
        A snapshot covering exactly the locators reachable from the closure.

    Raises:
        ResolutionError: If any descriptor cannot be resolved.
        FetchError: If any artifact cannot be fetched.
    """
    state = _ClosureResolution(project, closure, resolver, fetcher, snapshot or ResolutionSnapshot.empty())
    roots = sorted((workspace.anchored_descriptor for workspace in closure), key=str)
    result = await state.run(roots)
    logger.debug(
        "Resolved %d package(s) for %d workspace(s), %d descriptor(s) reused",
        len(result),
        len(closure),
        state.reused_count,
    )
    return result


async def build_root_snapshot(
    project: Project,
    resolver: ResolverProtocol,
    fetcher: FetcherProtocol,
) -> ResolutionSnapshot:
    """Resolve the whole monorepo once, for reuse by every per-workspace run."""
    return await ensure_resolved(project, frozenset(project.workspaces), resolver, fetcher)
