"""Workspace closure: the members a target workspace transitively needs.

Every hard dependency scope (``dependencies``, ``devDependencies``,
``peerDependencies``) counts, for the target and for every workspace reached
from it alike. ``optionalDependencies`` never grow the closure.
"""

import logging
from collections import deque

from wslock.workspace.exceptions import WorkspaceNotFoundError
from wslock.workspace.manifest import HARD_DEPENDENCY_SCOPES
from wslock.workspace.project import Project, Workspace

logger = logging.getLogger(__name__)


def iter_workspace_dependencies(project: Project, workspace: Workspace) -> list[Workspace]:
    """Return the members a workspace points at through its hard dependency scopes."""
    matches: list[Workspace] = []
    for scope in HARD_DEPENDENCY_SCOPES:
        for descriptor in workspace.manifest.descriptors_for_scope(scope):
            matching_workspace = project.try_workspace_by_descriptor(descriptor)
            if matching_workspace is None:
                continue
            matches.append(matching_workspace)
    return matches


def compute_closure(project: Project, target: Workspace) -> frozenset[Workspace]:
    """Compute the fixed-point set of workspaces reachable from ``target``.

    Args:
        project: The whole workspace graph.
        target: The workspace the closure is rooted at.

    Returns:
        The closure, always containing ``target``.

    Raises:
        WorkspaceNotFoundError: If ``target`` is not a member of ``project``.
    """
    if not project.contains(target):
        msg = f"Workspace '{target}' is not a member of project '{project.cwd}'"
        raise WorkspaceNotFoundError(msg)

    required: set[Workspace] = {target}
    worklist: deque[Workspace] = deque([target])

    while worklist:
        current = worklist.popleft()
        for dependency in iter_workspace_dependencies(project, current):
            if dependency in required:
                continue
            logger.debug("Workspace '%s' requires '%s'", current.ident, dependency.ident)
            required.add(dependency)
            worklist.append(dependency)

    return frozenset(required)
