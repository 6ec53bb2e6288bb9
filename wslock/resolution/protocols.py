from __future__ import annotations

from abc import abstractmethod
from enum import unique
from typing import Protocol

from pydantic import BaseModel, ConfigDict
from typing_extensions import runtime_checkable

from wslock._compat import StrEnum
from wslock.workspace.structures import Descriptor, Locator


@unique
class LinkType(StrEnum):
    HARD = "hard"
    SOFT = "soft"


class ResolvedPackage(BaseModel):
    """Everything the lockfile records about one locator."""

    model_config = ConfigDict(frozen=True)

    locator: Locator
    version: str
    link_type: LinkType
    dependencies: tuple[Descriptor, ...] = ()
    peer_dependencies: tuple[Descriptor, ...] = ()
    checksum: str | None = None

    @property
    def needs_fetch(self) -> bool:
        """Only hard-linked packages carry an artifact; workspaces are used in place."""
        return self.link_type == LinkType.HARD

    @property
    def is_complete(self) -> bool:
        return not self.needs_fetch or self.checksum is not None


@runtime_checkable
class ResolverProtocol(Protocol):
    """Contract of the external resolver: descriptor -> locator -> package metadata."""

    @abstractmethod
    def supports(self, descriptor: Descriptor) -> bool:
        """Whether this resolver knows how to resolve the descriptor's range."""
        ...

    @abstractmethod
    def supports_locator(self, locator: Locator) -> bool:
        """Whether this resolver owns the locator and can describe its package."""
        ...

    @abstractmethod
    async def resolve(self, descriptor: Descriptor) -> Locator:
        """Resolve a descriptor to exactly one locator.

        Raises:
            ResolutionError: If no candidate satisfies the descriptor.
        """
        ...

    @abstractmethod
    async def get_package(self, locator: Locator) -> ResolvedPackage:
        """Return the metadata (version, dependency edges) of a resolved locator.

        Raises:
            ResolutionError: If the locator's metadata cannot be obtained.
        """
        ...


@runtime_checkable
class FetcherProtocol(Protocol):
    """Contract of the external fetcher: bring a locator's artifact into the shared cache."""

    @abstractmethod
    async def fetch(self, package: ResolvedPackage) -> str:
        """Fetch the artifact and return its checksum.

        Raises:
            FetchError: If the artifact cannot be retrieved.
        """
        ...
