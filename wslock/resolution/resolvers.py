"""Workspace resolver and the dispatching resolver combining several resolvers."""

import logging

from typing_extensions import override

from wslock.resolution.protocols import LinkType, ResolvedPackage, ResolverProtocol
from wslock.workspace.exceptions import ResolutionError
from wslock.workspace.manifest import RESOLVED_DEPENDENCY_SCOPES, DependencyScope
from wslock.workspace.project import Project, Workspace
from wslock.workspace.structures import Descriptor, Ident, Locator

logger = logging.getLogger(__name__)

# Version recorded for workspaces whose manifest has none
UNVERSIONED_WORKSPACE_VERSION = "0.0.0-use.local"


class WorkspaceResolver(ResolverProtocol):
    """Resolves descriptors that point at monorepo members to their anchored locators."""

    def __init__(self, project: Project) -> None:
        self.project = project

    @override
    def supports(self, descriptor: Descriptor) -> bool:
        return self.project.try_workspace_by_descriptor(descriptor) is not None

    @override
    def supports_locator(self, locator: Locator) -> bool:
        return self._workspace_for_locator(locator) is not None

    @override
    async def resolve(self, descriptor: Descriptor) -> Locator:
        workspace = self.project.try_workspace_by_descriptor(descriptor)
        if workspace is None:
            msg = f"No workspace matches '{descriptor}'"
            raise ResolutionError(msg)
        return workspace.anchored_locator

    @override
    async def get_package(self, locator: Locator) -> ResolvedPackage:
        workspace = self._workspace_for_locator(locator)
        if workspace is None:
            msg = f"Locator '{locator}' is not a workspace of this project"
            raise ResolutionError(msg)

        # A name listed in several scopes is recorded once, first scope wins
        dependencies: dict[Ident, Descriptor] = {}
        for scope in RESOLVED_DEPENDENCY_SCOPES:
            for descriptor in workspace.manifest.descriptors_for_scope(scope):
                dependencies.setdefault(descriptor.ident, descriptor)

        return ResolvedPackage(
            locator=locator,
            version=workspace.manifest.version or UNVERSIONED_WORKSPACE_VERSION,
            link_type=LinkType.SOFT,
            dependencies=tuple(sorted(dependencies.values(), key=str)),
            peer_dependencies=tuple(workspace.manifest.descriptors_for_scope(DependencyScope.PEER_DEPENDENCIES)),
        )

    def _workspace_for_locator(self, locator: Locator) -> Workspace | None:
        workspace = self.project.try_workspace_by_ident(locator.ident)
        if workspace is None or workspace.anchored_locator != locator:
            return None
        return workspace


class MultiResolver(ResolverProtocol):
    """Dispatches each request to the first resolver that supports it."""

    def __init__(self, resolvers: list[ResolverProtocol]) -> None:
        self.resolvers = resolvers

    def _resolver_for(self, descriptor: Descriptor) -> ResolverProtocol | None:
        for resolver in self.resolvers:
            if resolver.supports(descriptor):
                return resolver
        return None

    @override
    def supports(self, descriptor: Descriptor) -> bool:
        return self._resolver_for(descriptor) is not None

    @override
    def supports_locator(self, locator: Locator) -> bool:
        return any(resolver.supports_locator(locator) for resolver in self.resolvers)

    @override
    async def resolve(self, descriptor: Descriptor) -> Locator:
        resolver = self._resolver_for(descriptor)
        if resolver is None:
            msg = f"Unsupported range '{descriptor.range}' for '{descriptor.ident}': no resolver handles this protocol"
            raise ResolutionError(msg)
        return await resolver.resolve(descriptor)

    @override
    async def get_package(self, locator: Locator) -> ResolvedPackage:
        for resolver in self.resolvers:
            if resolver.supports_locator(locator):
                return await resolver.get_package(locator)
        msg = f"No resolver can describe locator '{locator}'"
        raise ResolutionError(msg)
