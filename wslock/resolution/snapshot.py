"""Immutable resolution maps handed from the root run to per-workspace runs."""

from collections.abc import Mapping
from types import MappingProxyType

from wslock.resolution.protocols import ResolvedPackage
from wslock.workspace.structures import Descriptor, Locator


class ResolutionSnapshot:
    """A read-only descriptor -> locator map plus the metadata of every locator.

    Snapshots are never mutated: per-workspace runs build new ones, which keeps
    the root run's results safe to share between concurrent targets.
    """

    __slots__ = ("_packages", "_resolutions")

    def __init__(
        self,
        resolutions: Mapping[Descriptor, Locator] | None = None,
        packages: Mapping[Locator, ResolvedPackage] | None = None,
    ) -> None:
        self._resolutions: Mapping[Descriptor, Locator] = MappingProxyType(dict(resolutions or {}))
        self._packages: Mapping[Locator, ResolvedPackage] = MappingProxyType(dict(packages or {}))

    @classmethod
    def empty(cls) -> "ResolutionSnapshot":
        return cls()

    @property
    def resolutions(self) -> Mapping[Descriptor, Locator]:
        return self._resolutions

    @property
    def packages(self) -> Mapping[Locator, ResolvedPackage]:
        return self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResolutionSnapshot):
            return NotImplemented
        return dict(self._resolutions) == dict(other._resolutions) and dict(self._packages) == dict(other._packages)

    def __hash__(self) -> int:
        return hash((frozenset(self._resolutions.items()), frozenset(self._packages)))

    def __repr__(self) -> str:
        return f"ResolutionSnapshot(resolutions={len(self._resolutions)}, packages={len(self._packages)})"

    def get_locator(self, descriptor: Descriptor) -> Locator | None:
        return self._resolutions.get(descriptor)

    def get_package(self, locator: Locator) -> ResolvedPackage | None:
        return self._packages.get(locator)

    def descriptors_for(self, locator: Locator) -> list[Descriptor]:
        """Return every descriptor resolving to ``locator``, sorted by string form."""
        return sorted((descriptor for descriptor, target in self._resolutions.items() if target == locator), key=str)
