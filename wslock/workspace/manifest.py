"""The ``package.json`` workspace manifest model and its parser."""

import json
from enum import unique
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from wslock._compat import StrEnum
from wslock._utils.pydantic_utils import empty_dict_factory_of
from wslock.workspace.exceptions import ManifestParseError, ManifestValidationError
from wslock.workspace.semver import SemVerError, parse_version
from wslock.workspace.structures import Descriptor, Ident, is_valid_ident, make_descriptor, parse_ident

MANIFEST_FILENAME = "package.json"


@unique
class DependencyScope(StrEnum):
    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    PEER_DEPENDENCIES = "peerDependencies"
    OPTIONAL_DEPENDENCIES = "optionalDependencies"


# Scopes that make a workspace part of another workspace's closure
HARD_DEPENDENCY_SCOPES: tuple[DependencyScope, ...] = (
    DependencyScope.DEPENDENCIES,
    DependencyScope.DEV_DEPENDENCIES,
    DependencyScope.PEER_DEPENDENCIES,
)

# Scopes whose descriptors get resolved; peer dependencies are provided by the parent
RESOLVED_DEPENDENCY_SCOPES: tuple[DependencyScope, ...] = (
    DependencyScope.DEPENDENCIES,
    DependencyScope.DEV_DEPENDENCIES,
    DependencyScope.OPTIONAL_DEPENDENCIES,
)


class WorkspaceManifest(BaseModel):
    """The subset of ``package.json`` needed to build the workspace graph."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str | None = None
    version: str | None = None
    private: bool = False
    workspaces: list[str] = Field(default_factory=list)

    dependencies: dict[str, str] = Field(default_factory=empty_dict_factory_of(str, str))
    dev_dependencies: dict[str, str] = Field(default_factory=empty_dict_factory_of(str, str), alias="devDependencies")
    peer_dependencies: dict[str, str] = Field(default_factory=empty_dict_factory_of(str, str), alias="peerDependencies")
    optional_dependencies: dict[str, str] = Field(default_factory=empty_dict_factory_of(str, str), alias="optionalDependencies")

    @model_validator(mode="before")
    @classmethod
    def _normalize_workspaces(cls, data: Any) -> Any:
        """Accept both ``"workspaces": [...]`` and ``"workspaces": {"packages": [...]}``."""
        if not isinstance(data, dict):
            return data
        raw = cast("dict[str, Any]", data)
        workspaces: Any = raw.get("workspaces")
        if isinstance(workspaces, dict):
            packages: Any = cast("dict[str, Any]", workspaces).get("packages", [])
            return {**raw, "workspaces": packages}
        return raw

    @field_validator("name")
    @classmethod
    def validate_name(cls, name: str | None) -> str | None:
        if name is not None and not is_valid_ident(name):
            msg = f"Invalid package name '{name}'. Expected 'name' or '@scope/name'."
            raise ValueError(msg)
        return name

    @field_validator("version")
    @classmethod
    def validate_version(cls, version: str | None) -> str | None:
        if version is None:
            return None
        try:
            parse_version(version)
        except SemVerError as exc:
            msg = f"Invalid version '{version}'. Must be valid semver (e.g. '1.0.0')."
            raise ValueError(msg) from exc
        return version

    @field_validator("dependencies", "dev_dependencies", "peer_dependencies", "optional_dependencies")
    @classmethod
    def validate_dependency_names(cls, scope: dict[str, str]) -> dict[str, str]:
        for dependency_name in scope:
            if not is_valid_ident(dependency_name):
                msg = f"Invalid dependency name '{dependency_name}'."
                raise ValueError(msg)
        return scope

    @property
    def ident(self) -> Ident | None:
        if self.name is None:
            return None
        return parse_ident(self.name)

    def get_for_scope(self, scope: DependencyScope) -> dict[str, str]:
        match scope:
            case DependencyScope.DEPENDENCIES:
                return self.dependencies
            case DependencyScope.DEV_DEPENDENCIES:
                return self.dev_dependencies
            case DependencyScope.PEER_DEPENDENCIES:
                return self.peer_dependencies
            case DependencyScope.OPTIONAL_DEPENDENCIES:
                return self.optional_dependencies

    def descriptors_for_scope(self, scope: DependencyScope) -> list[Descriptor]:
        """Return the scope's entries as descriptors, sorted by name for determinism."""
        entries = self.get_for_scope(scope)
        return [make_descriptor(parse_ident(name), entries[name]) for name in sorted(entries)]


def parse_manifest(content: str, source: str = MANIFEST_FILENAME) -> WorkspaceManifest:
    """Parse ``package.json`` content into a WorkspaceManifest.

    Args:
        content: The raw JSON string
        source: Where the content comes from, used in error messages

    Returns:
        A validated WorkspaceManifest

    Raises:
        ManifestParseError: If the JSON syntax is invalid
        ManifestValidationError: If the parsed data fails model validation
    """
    try:
        raw: Any = json.loads(content)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in {source}: {exc}"
        raise ManifestParseError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"{source} must contain a JSON object, got {type(raw).__name__}"
        raise ManifestValidationError(msg)

    try:
        return WorkspaceManifest.model_validate(raw)
    except ValidationError as exc:
        msg = f"{source} validation failed: {exc}"
        raise ManifestValidationError(msg) from exc
