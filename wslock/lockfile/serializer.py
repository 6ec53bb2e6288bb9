"""Lockfile model, generation from a scoped view, and TOML I/O.

One entry per locator, keyed by the sorted descriptors resolving to it
(``"lodash@^4.0.0, lodash@^4.17.0"``). Output is fully sorted, so serializing
an unchanged view twice gives byte-identical text.
"""

from typing import Any, cast

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wslock._utils.toml_utils import TomlError, load_toml_from_content
from wslock.lockfile.scope import ScopedLockfileView
from wslock.resolution.protocols import LinkType, ResolvedPackage
from wslock.resolution.snapshot import ResolutionSnapshot
from wslock.workspace.exceptions import LockFileError, ManifestValidationError
from wslock.workspace.structures import Descriptor, Locator, make_descriptor, parse_descriptor, parse_ident, parse_locator

LOCKFILE_VERSION = 1
CACHE_KEY = "wslock-sha512"
METADATA_KEY = "__metadata"
DESCRIPTOR_SEPARATOR = ", "


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class LockfileEntry(BaseModel):
    """A single locked package."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    resolution: str
    version: str
    link_type: LinkType = Field(alias="linkType")
    checksum: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(default_factory=dict, alias="peerDependencies")

    @field_validator("resolution")
    @classmethod
    def validate_resolution(cls, resolution: str) -> str:
        try:
            parse_locator(resolution)
        except ManifestValidationError as exc:
            raise ValueError(exc.message) from exc
        return resolution


class Lockfile(BaseModel):
    """A whole lockfile: metadata plus entries keyed by their joined descriptors."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    version: int = LOCKFILE_VERSION
    cache_key: str = Field(default=CACHE_KEY, alias="cacheKey")
    entries: dict[str, LockfileEntry] = Field(default_factory=dict)

    def find_entry(self, locator: Locator) -> LockfileEntry | None:
        resolution = str(locator)
        for entry in self.entries.values():
            if entry.resolution == resolution:
                return entry
        return None


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _descriptors_to_table(descriptors: tuple[Descriptor, ...]) -> dict[str, str]:
    return {str(descriptor.ident): descriptor.range for descriptor in sorted(descriptors, key=str)}


def generate_lockfile(view: ScopedLockfileView) -> Lockfile:
    """Turn a scoped view into a lockfile model.

    Raises:
        LockFileError: If a locator of the view has no descriptor resolving to it.
    """
    entries: dict[str, LockfileEntry] = {}
    for locator, package in view.resolutions.packages.items():
        descriptors = view.resolutions.descriptors_for(locator)
        if not descriptors:
            msg = f"Locator '{locator}' has no descriptor resolving to it"
            raise LockFileError(msg)
        key = DESCRIPTOR_SEPARATOR.join(str(descriptor) for descriptor in descriptors)
        entries[key] = LockfileEntry(
            resolution=str(locator),
            version=package.version,
            link_type=package.link_type,
            checksum=package.checksum,
            dependencies=_descriptors_to_table(package.dependencies),
            peer_dependencies=_descriptors_to_table(package.peer_dependencies),
        )
    return Lockfile(entries=entries)


# ---------------------------------------------------------------------------
# TOML parse / serialize
# ---------------------------------------------------------------------------


def serialize_lockfile(lockfile: Lockfile) -> str:
    """Serialize a ``Lockfile`` to a TOML string, sorted for clean VCS diffs."""
    doc = tomlkit.document()
    doc.add(tomlkit.comment("This file is generated by wslock. Do not edit it by hand."))

    metadata = tomlkit.table()
    metadata.add("version", lockfile.version)
    metadata.add("cacheKey", lockfile.cache_key)
    doc.add(METADATA_KEY, metadata)

    for key in sorted(lockfile.entries):
        entry = lockfile.entries[key]
        table = tomlkit.table()
        table.add("resolution", entry.resolution)
        table.add("version", entry.version)
        table.add("linkType", str(entry.link_type))
        if entry.checksum is not None:
            table.add("checksum", entry.checksum)
        if entry.dependencies:
            dependencies = tomlkit.table()
            for name in sorted(entry.dependencies):
                dependencies.add(name, entry.dependencies[name])
            table.add("dependencies", dependencies)
        if entry.peer_dependencies:
            peer_dependencies = tomlkit.table()
            for name in sorted(entry.peer_dependencies):
                peer_dependencies.add(name, entry.peer_dependencies[name])
            table.add("peerDependencies", peer_dependencies)
        doc.add(key, table)

    return tomlkit.dumps(doc)  # type: ignore[arg-type]


def parse_lockfile(content: str) -> Lockfile:
    """Parse a lockfile TOML string into a ``Lockfile`` model.

    Raises:
        LockFileError: If parsing or validation fails.
    """
    if not content.strip():
        return Lockfile()

    try:
        raw = load_toml_from_content(content)
    except TomlError as exc:
        msg = f"Invalid TOML syntax in lockfile: {exc}"
        raise LockFileError(msg) from exc

    metadata: Any = raw.pop(METADATA_KEY, {})
    if not isinstance(metadata, dict):
        msg = f"Lockfile '{METADATA_KEY}' must be a table, got {type(metadata).__name__}"
        raise LockFileError(msg)

    entries: dict[str, LockfileEntry] = {}
    for key, entry in raw.items():
        if not isinstance(entry, dict):
            msg = f"Lockfile entry for '{key}' must be a table, got {type(entry).__name__}"
            raise LockFileError(msg)
        try:
            entries[str(key)] = LockfileEntry.model_validate(cast("dict[str, Any]", entry))
        except ValidationError as exc:
            msg = f"Invalid lockfile entry for '{key}': {exc}"
            raise LockFileError(msg) from exc

    try:
        return Lockfile.model_validate({**cast("dict[str, Any]", metadata), "entries": entries})
    except ValidationError as exc:
        msg = f"Invalid lockfile metadata: {exc}"
        raise LockFileError(msg) from exc


# ---------------------------------------------------------------------------
# Reuse
# ---------------------------------------------------------------------------


def _table_to_descriptors(table: dict[str, str]) -> tuple[Descriptor, ...]:
    return tuple(make_descriptor(parse_ident(name), table[name]) for name in sorted(table))


def lockfile_to_snapshot(lockfile: Lockfile) -> ResolutionSnapshot:
    """Rebuild a reuse snapshot from a previously written lockfile.

    Raises:
        LockFileError: If the lockfile version is unsupported or an entry cannot be parsed.
    """
    if lockfile.version != LOCKFILE_VERSION:
        msg = f"Unsupported lockfile version {lockfile.version} (expected {LOCKFILE_VERSION})"
        raise LockFileError(msg)

    resolutions: dict[Descriptor, Locator] = {}
    packages: dict[Locator, ResolvedPackage] = {}
    for key, entry in lockfile.entries.items():
        try:
            locator = parse_locator(entry.resolution)
            for descriptor_str in key.split(DESCRIPTOR_SEPARATOR):
                resolutions[parse_descriptor(descriptor_str.strip())] = locator
            packages[locator] = ResolvedPackage(
                locator=locator,
                version=entry.version,
                link_type=entry.link_type,
                checksum=entry.checksum,
                dependencies=_table_to_descriptors(entry.dependencies),
                peer_dependencies=_table_to_descriptors(entry.peer_dependencies),
            )
        except ManifestValidationError as exc:
            msg = f"Invalid lockfile entry '{key}': {exc.message}"
            raise LockFileError(msg) from exc

    return ResolutionSnapshot(resolutions=resolutions, packages=packages)
