"""Shared archive cache for fetched registry packages.

Cache layout: ``{cache_root}/{ident}/{version}.tgz``
(e.g. ``~/.wslock/cache/@types/node/20.1.0.tgz``).

Uses a staging file + atomic rename for safe writes.
"""

import hashlib
import os
from pathlib import Path

from wslock.workspace.exceptions import PackageCacheError

ARCHIVE_SUFFIX = ".tgz"


def get_default_cache_root() -> Path:
    """Return the default cache root directory.

    Returns:
        ``~/.wslock/cache``
    """
    return Path.home() / ".wslock" / "cache"


def get_cached_archive_path(
    ident: str,
    version: str,
    cache_root: Path | None = None,
) -> Path:
    """Compute the cache path for a package version.

    Args:
        ident: Package name, e.g. ``lodash`` or ``@types/node``.
        version: Resolved version string, e.g. ``1.0.0``.
        cache_root: Override for the cache root directory.

    Returns:
        The archive path where this package version would be cached.

    Raises:
        PackageCacheError: If the name or version would escape the cache root.
    """
    root = (cache_root or get_default_cache_root()).resolve()
    archive_path = (root / ident / f"{version}{ARCHIVE_SUFFIX}").resolve()
    if not archive_path.is_relative_to(root):
        msg = f"Path traversal detected for '{ident}@{version}': '{archive_path}' is outside '{root}'"
        raise PackageCacheError(msg)
    return archive_path


def is_cached(
    ident: str,
    version: str,
    cache_root: Path | None = None,
) -> bool:
    """Check whether a non-empty archive exists for this package version."""
    archive_path = get_cached_archive_path(ident, version, cache_root)
    return archive_path.is_file() and archive_path.stat().st_size > 0


def compute_checksum(content: bytes) -> str:
    """Return the sha512 hex digest recorded in lockfiles."""
    return hashlib.sha512(content).hexdigest()


def read_cached_checksum(
    ident: str,
    version: str,
    cache_root: Path | None = None,
) -> str:
    """Compute the checksum of a cached archive.

    Raises:
        PackageCacheError: If the archive cannot be read.
    """
    archive_path = get_cached_archive_path(ident, version, cache_root)
    try:
        return compute_checksum(archive_path.read_bytes())
    except OSError as exc:
        msg = f"Failed to read cached package '{ident}@{version}': {exc}"
        raise PackageCacheError(msg) from exc


def store_in_cache(
    content: bytes,
    ident: str,
    version: str,
    cache_root: Path | None = None,
) -> Path:
    """Write a package archive into the cache.

    Uses a staging file (``{path}.staging``) and an atomic rename so readers
    never see a truncated archive.

    Returns:
        The final cache path.

    Raises:
        PackageCacheError: If writing or renaming fails.
    """
    final_path = get_cached_archive_path(ident, version, cache_root)
    staging_path = final_path.parent / f"{final_path.name}.staging"

    try:
        final_path.parent.mkdir(parents=True, exist_ok=True)
        staging_path.write_bytes(content)
        os.replace(staging_path, final_path)
    except OSError as exc:
        staging_path.unlink(missing_ok=True)
        msg = f"Failed to store package '{ident}@{version}' in cache: {exc}"
        raise PackageCacheError(msg) from exc

    return final_path
