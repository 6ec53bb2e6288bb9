"""Reduce a resolution snapshot to one workspace closure and normalize its self-reference.

The lockfile of a workspace is consumed from the workspace's own directory, so
its own locator (``workspace:packages/foo``) becomes ``workspace:.``. The
descriptor that produced it is renamed alongside, so the two never diverge.
"""

import logging
from collections import deque

from pydantic import BaseModel, ConfigDict

from wslock.resolution.protocols import ResolvedPackage
from wslock.resolution.snapshot import ResolutionSnapshot
from wslock.workspace.exceptions import InvariantViolationError
from wslock.workspace.project import Project, Workspace
from wslock.workspace.structures import SELF_REFERENCE, Descriptor, Locator, make_descriptor, make_locator

logger = logging.getLogger(__name__)


class ScopedLockfileView(BaseModel):
    """What gets serialized for one workspace."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    target: Workspace
    closure: frozenset[Workspace]
    self_locator: Locator
    resolutions: ResolutionSnapshot


def _find_self_descriptor(workspace: Workspace, resolutions: ResolutionSnapshot) -> Descriptor | None:
    """Return the descriptor anchoring a workspace, before or after normalization."""
    anchored = workspace.anchored_descriptor
    if resolutions.get_locator(anchored) is not None:
        return anchored
    normalized = make_descriptor(workspace.ident, SELF_REFERENCE)
    if resolutions.get_locator(normalized) is not None:
        return normalized
    return None


def _collect_reachable(
    roots: list[Descriptor],
    resolutions: ResolutionSnapshot,
    excluded: frozenset[Locator],
) -> tuple[dict[Locator, ResolvedPackage], dict[Descriptor, Locator]]:
    reachable: dict[Locator, ResolvedPackage] = {}
    used: dict[Descriptor, Locator] = {}
    visited: set[Descriptor] = set()
    queue: deque[Descriptor] = deque(roots)

    while queue:
        descriptor = queue.popleft()
        if descriptor in visited:
            continue
        visited.add(descriptor)

        locator = resolutions.get_locator(descriptor)
        if locator is None or locator in excluded:
            # Only dependencies deliberately left out of the closure end up here
            logger.debug("Descriptor '%s' has no resolution in this scope, leaving it out", descriptor)
            continue
        used[descriptor] = locator
        if locator in reachable:
            continue

        package = resolutions.get_package(locator)
        if package is None:
            msg = f"Locator '{locator}' (from '{descriptor}') has no resolution result"
            raise InvariantViolationError(msg)
        if not package.is_complete:
            msg = f"Locator '{locator}' was never fetched"
            raise InvariantViolationError(msg)

        reachable[locator] = package
        queue.extend(package.dependencies)

    return reachable, used


def extract_scope(
    project: Project,
    closure: frozenset[Workspace],
    resolutions: ResolutionSnapshot,
    target: Workspace,
) -> ScopedLockfileView:
    """Build the reduced view for ``target`` from a snapshot covering its closure.

    Args:
        project: The whole workspace graph.
        closure: The closure of ``target``.
        resolutions: A complete snapshot for the closure (reused or freshly resolved).
        target: The workspace whose lockfile is being generated.

    Returns:
        The view restricted to locators reachable from the closure, with the
        target's self-reference normalized to ``workspace:.``.

    Raises:
        InvariantViolationError: If the target is missing from the closure or
            from the snapshot, or a reachable locator has no complete resolution.
    """
    if target not in closure or not project.contains(target):
        msg = f"Workspace '{target}' is not part of its own closure"
        raise InvariantViolationError(msg)

    self_descriptor = _find_self_descriptor(target, resolutions)
    if self_descriptor is None:
        msg = f"Workspace '{target}' has no locator in the resolution map"
        raise InvariantViolationError(msg)
    old_locator = resolutions.get_locator(self_descriptor)
    assert old_locator is not None

    roots: list[Descriptor] = []
    for workspace in sorted(closure, key=lambda member: member.relative_cwd):
        anchor = self_descriptor if workspace == target else _find_self_descriptor(workspace, resolutions)
        if anchor is None:
            msg = f"Workspace '{workspace}' has no locator in the resolution map"
            raise InvariantViolationError(msg)
        roots.append(anchor)

    excluded = frozenset(workspace.anchored_locator for workspace in project.workspaces if workspace not in closure)
    reachable, used = _collect_reachable(roots, resolutions, excluded)
    if old_locator not in reachable:
        msg = f"Workspace '{target}' resolved to '{old_locator}' which has no resolution result"
        raise InvariantViolationError(msg)

    new_locator = old_locator
    descriptor_renames: dict[Descriptor, Descriptor] = {}
    if old_locator.is_workspace and old_locator.reference != SELF_REFERENCE:
        new_locator = make_locator(old_locator.ident, SELF_REFERENCE)
        for descriptor, locator in used.items():
            if locator == old_locator and descriptor.range == old_locator.reference:
                descriptor_renames[descriptor] = make_descriptor(descriptor.ident, SELF_REFERENCE)
        logger.debug("Rewriting '%s' to '%s'", old_locator, new_locator)

    def rename_locator(locator: Locator) -> Locator:
        return new_locator if locator == old_locator else locator

    scoped_resolutions: dict[Descriptor, Locator] = {
        descriptor_renames.get(descriptor, descriptor): rename_locator(locator) for descriptor, locator in used.items()
    }

    scoped_packages: dict[Locator, ResolvedPackage] = {}
    for locator, package in reachable.items():
        dependencies = tuple(
            renamed
            for renamed in (descriptor_renames.get(dependency, dependency) for dependency in package.dependencies)
            if renamed in scoped_resolutions
        )
        scoped_packages[rename_locator(locator)] = package.model_copy(
            update={"locator": rename_locator(locator), "dependencies": dependencies},
        )

    return ScopedLockfileView(
        target=target,
        closure=closure,
        self_locator=new_locator,
        resolutions=ResolutionSnapshot(resolutions=scoped_resolutions, packages=scoped_packages),
    )
