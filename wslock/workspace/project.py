"""The workspace graph: every member of a monorepo with its manifest.

The project is loaded once per run from the root ``package.json`` and its
``workspaces`` globs, and is never mutated afterwards.
"""

import logging
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict

from wslock.workspace.exceptions import ManifestValidationError, WorkspaceNotFoundError
from wslock.workspace.manifest import MANIFEST_FILENAME, WorkspaceManifest, parse_manifest
from wslock.workspace.semver import SemVerError, parse_range, parse_version, version_satisfies
from wslock.workspace.structures import WORKSPACE_PROTOCOL, Descriptor, Ident, Locator, make_descriptor, make_locator, parse_ident

logger = logging.getLogger(__name__)

ROOT_WORKSPACE_FALLBACK_NAME = "root-workspace-0b6124"

# Selectors of the workspace protocol that match any version of the named workspace
_ANY_VERSION_SELECTORS = frozenset({"*", "^", "~"})


def _normalize_relative_path(path: str) -> str:
    normalized = str(PurePosixPath(path.strip() or "."))
    return normalized.removeprefix("./") or "."


class Workspace(BaseModel):
    """One member of the monorepo. Identity is its path relative to the project root."""

    model_config = ConfigDict(frozen=True)

    ident: Ident
    cwd: Path
    relative_cwd: str
    manifest: WorkspaceManifest

    def __hash__(self) -> int:
        return hash(self.relative_cwd)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Workspace):
            return NotImplemented
        return self.relative_cwd == other.relative_cwd

    def __str__(self) -> str:
        return f"{self.ident} ({self.relative_cwd})"

    @property
    def anchored_descriptor(self) -> Descriptor:
        return make_descriptor(self.ident, f"{WORKSPACE_PROTOCOL}{self.relative_cwd}")

    @property
    def anchored_locator(self) -> Locator:
        return make_locator(self.ident, f"{WORKSPACE_PROTOCOL}{self.relative_cwd}")

    def accepts(self, range_value: str) -> bool:
        """Check whether a dependency range targets this workspace.

        ``workspace:`` ranges match by path, by the ``*``/``^``/``~`` shorthands,
        or by a semver range against the workspace version. Plain semver ranges
        match when the workspace version satisfies them. Other protocols never
        match.
        """
        if range_value.startswith(WORKSPACE_PROTOCOL):
            selector = range_value[len(WORKSPACE_PROTOCOL) :]
            if selector in _ANY_VERSION_SELECTORS:
                return True
            if _normalize_relative_path(selector) == self.relative_cwd:
                return True
            return self._version_matches(selector)

        if ":" in range_value:
            return False
        return self._version_matches(range_value)

    def _version_matches(self, range_value: str) -> bool:
        if self.manifest.version is None:
            return False
        try:
            return version_satisfies(parse_version(self.manifest.version), parse_range(range_value))
        except SemVerError:
            return False


class Project(BaseModel):
    """All workspaces of a monorepo, in discovery order (root first)."""

    model_config = ConfigDict(frozen=True)

    cwd: Path
    workspaces: tuple[Workspace, ...]

    def try_workspace_by_ident(self, ident: Ident) -> Workspace | None:
        for workspace in self.workspaces:
            if workspace.ident == ident:
                return workspace
        return None

    def get_workspace_by_ident(self, ident: Ident | str) -> Workspace:
        """Return the workspace named ``ident``.

        Raises:
            WorkspaceNotFoundError: If no member carries this name.
        """
        parsed = parse_ident(ident) if isinstance(ident, str) else ident
        workspace = self.try_workspace_by_ident(parsed)
        if workspace is None:
            msg = f"Workspace '{parsed}' not found in project '{self.cwd}'"
            raise WorkspaceNotFoundError(msg)
        return workspace

    def try_workspace_by_descriptor(self, descriptor: Descriptor) -> Workspace | None:
        """Return the member a descriptor points at, or None for external dependencies."""
        workspace = self.try_workspace_by_ident(descriptor.ident)
        if workspace is None or not workspace.accepts(descriptor.range):
            return None
        return workspace

    def contains(self, workspace: Workspace) -> bool:
        return workspace in self.workspaces


def _read_manifest(directory: Path) -> WorkspaceManifest:
    manifest_path = directory / MANIFEST_FILENAME
    content = manifest_path.read_text(encoding="utf-8")
    return parse_manifest(content, source=str(manifest_path))


def _expand_workspace_patterns(directory: Path, patterns: list[str]) -> list[Path]:
    """Expand ``workspaces`` globs to the directories that hold a manifest."""
    found: list[Path] = []
    for pattern in patterns:
        cleaned = pattern.strip().removeprefix("./").rstrip("/")
        if not cleaned:
            continue
        for candidate in sorted(directory.glob(cleaned)):
            if candidate.is_dir() and (candidate / MANIFEST_FILENAME).is_file():
                found.append(candidate.resolve())
    return found


def load_project(root: Path) -> Project:
    """Load the project rooted at ``root``.

    Nested ``workspaces`` declarations are followed. Directories matched twice are
    loaded once.

    Raises:
        ManifestError: If a manifest cannot be read or parsed.
        ManifestValidationError: If two workspaces share a name, or a non-root
            workspace has no name.
    """
    root = root.resolve()
    if not (root / MANIFEST_FILENAME).is_file():
        msg = f"{MANIFEST_FILENAME} not found in '{root}'"
        raise ManifestValidationError(msg)

    workspaces: list[Workspace] = []
    seen_dirs: set[Path] = set()
    queue: list[Path] = [root]

    while queue:
        directory = queue.pop(0)
        if directory in seen_dirs:
            continue
        seen_dirs.add(directory)

        manifest = _read_manifest(directory)
        relative_cwd = directory.relative_to(root).as_posix() if directory != root else "."

        ident = manifest.ident
        if ident is None:
            if directory != root:
                msg = f"Workspace '{relative_cwd}' has no 'name' in its {MANIFEST_FILENAME}"
                raise ManifestValidationError(msg)
            ident = parse_ident(ROOT_WORKSPACE_FALLBACK_NAME)

        workspaces.append(Workspace(ident=ident, cwd=directory, relative_cwd=relative_cwd, manifest=manifest))
        queue.extend(_expand_workspace_patterns(directory, manifest.workspaces))

    by_ident: dict[Ident, Workspace] = {}
    for workspace in workspaces:
        duplicate = by_ident.get(workspace.ident)
        if duplicate is not None:
            msg = f"Duplicate workspace name '{workspace.ident}' in '{duplicate.relative_cwd}' and '{workspace.relative_cwd}'"
            raise ManifestValidationError(msg)
        by_ident[workspace.ident] = workspace

    logger.debug("Loaded project '%s' with %d workspace(s)", root, len(workspaces))
    return Project(cwd=root, workspaces=tuple(workspaces))
