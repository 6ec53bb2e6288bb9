# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""npm registry resolver and tarball fetcher.

Resolution reads the abbreviated packument (``application/vnd.npm.install-v1+json``)
of each package once per run and selects the highest version satisfying the
requested range. Fetching downloads the tarball into the shared archive cache.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, cast
from urllib.parse import quote

import httpx
from typing_extensions import override

from wslock.resolution.package_cache import compute_checksum, is_cached, read_cached_checksum, store_in_cache
from wslock.resolution.protocols import FetcherProtocol, LinkType, ResolvedPackage, ResolverProtocol
from wslock.workspace.exceptions import FetchError, ManifestValidationError, PackageCacheError, ResolutionError
from wslock.workspace.semver import SemVerError, is_valid_range, parse_range, parse_version, range_accepts, select_maximum_version
from wslock.workspace.structures import NPM_PROTOCOL, Descriptor, Ident, Locator, make_descriptor, make_locator, parse_ident

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
ABBREVIATED_METADATA = "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8"

_TAG_PATTERN = re.compile(r"^[a-z][a-z0-9._-]*$", re.IGNORECASE)


def split_npm_range(descriptor: Descriptor) -> tuple[Ident, str]:
    """Return the package actually requested and its range.

    ``foo@^1.0.0`` and ``foo@npm:^1.0.0`` request ``foo``; the alias
    ``foo@npm:bar@^1.0.0`` requests ``bar``.
    """
    range_value = descriptor.range
    if not range_value.startswith(NPM_PROTOCOL):
        return descriptor.ident, range_value

    body = range_value[len(NPM_PROTOCOL) :]
    separator = body.find("@", 1)
    if separator == -1:
        return descriptor.ident, body
    try:
        return parse_ident(body[:separator]), body[separator + 1 :]
    except ManifestValidationError as exc:
        msg = f"Invalid npm alias in '{descriptor}': {exc.message}"
        raise ResolutionError(msg) from exc


def package_url(registry_url: str, ident: Ident) -> str:
    return f"{registry_url.rstrip('/')}/{quote(str(ident), safe='@')}"


def tarball_url(registry_url: str, ident: Ident, version: str) -> str:
    return f"{registry_url.rstrip('/')}/{ident}/-/{ident.name}-{version}.tgz"


class NpmRegistryResolver(ResolverProtocol):
    """Resolves semver ranges, dist-tags and ``npm:`` aliases against an npm registry."""

    def __init__(self, client: httpx.AsyncClient, registry_url: str = DEFAULT_REGISTRY_URL) -> None:
        self.client = client
        self.registry_url = registry_url
        self._packuments: dict[Ident, asyncio.Future[dict[str, Any]]] = {}

    @override
    def supports(self, descriptor: Descriptor) -> bool:
        if descriptor.range.startswith(NPM_PROTOCOL):
            return True
        if descriptor.protocol is not None:
            return False
        return is_valid_range(descriptor.range) or _TAG_PATTERN.match(descriptor.range) is not None

    @override
    def supports_locator(self, locator: Locator) -> bool:
        return locator.reference.startswith(NPM_PROTOCOL)

    @override
    async def resolve(self, descriptor: Descriptor) -> Locator:
        ident, range_value = split_npm_range(descriptor)
        packument = await self._get_packument(ident)
        versions = cast("dict[str, Any]", packument.get("versions") or {})
        dist_tags = cast("dict[str, str]", packument.get("dist-tags") or {})

        if range_value in dist_tags:
            return make_locator(ident, f"{NPM_PROTOCOL}{dist_tags[range_value]}")

        try:
            spec = parse_range(range_value)
        except SemVerError as exc:
            msg = f"Invalid range in '{descriptor}': {exc}"
            raise ResolutionError(msg) from exc

        # npm prefers the "latest" tag whenever it satisfies the range
        latest = dist_tags.get("latest")
        if latest is not None and latest in versions and range_accepts(range_value, latest):
            return make_locator(ident, f"{NPM_PROTOCOL}{latest}")

        candidates = []
        for version_str in versions:
            try:
                candidates.append(parse_version(version_str))
            except SemVerError:
                continue

        selected = select_maximum_version(candidates, spec)
        if selected is None:
            msg = f"No candidates found for '{descriptor}': no version of '{ident}' satisfies '{range_value}'"
            raise ResolutionError(msg)
        return make_locator(ident, f"{NPM_PROTOCOL}{selected}")

    @override
    async def get_package(self, locator: Locator) -> ResolvedPackage:
        version = locator.reference[len(NPM_PROTOCOL) :]
        packument = await self._get_packument(locator.ident)
        versions = cast("dict[str, Any]", packument.get("versions") or {})
        entry: Any = versions.get(version)
        if not isinstance(entry, dict):
            msg = f"Version '{version}' of '{locator.ident}' is not published on '{self.registry_url}'"
            raise ResolutionError(msg)
        manifest = cast("dict[str, Any]", entry)

        dependencies: dict[str, str] = {}
        for scope in ("dependencies", "optionalDependencies"):
            dependencies.update(cast("dict[str, str]", manifest.get(scope) or {}))
        peer_dependencies = cast("dict[str, str]", manifest.get("peerDependencies") or {})

        try:
            return ResolvedPackage(
                locator=locator,
                version=version,
                link_type=LinkType.HARD,
                dependencies=tuple(make_descriptor(parse_ident(name), dependencies[name]) for name in sorted(dependencies)),
                peer_dependencies=tuple(make_descriptor(parse_ident(name), peer_dependencies[name]) for name in sorted(peer_dependencies)),
            )
        except (ManifestValidationError, ValueError) as exc:
            msg = f"Invalid dependency metadata for '{locator}': {exc}"
            raise ResolutionError(msg) from exc

    async def _get_packument(self, ident: Ident) -> dict[str, Any]:
        future = self._packuments.get(ident)
        if future is None:
            future = asyncio.ensure_future(self._download_packument(ident))
            self._packuments[ident] = future
        # Shared by every caller: a cancelled caller must not cancel the download
        return await asyncio.shield(future)

    async def _download_packument(self, ident: Ident) -> dict[str, Any]:
        url = package_url(self.registry_url, ident)
        try:
            response = await self.client.get(url, headers={"Accept": ABBREVIATED_METADATA})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                msg = f"Package '{ident}' not found on registry '{self.registry_url}'"
                raise ResolutionError(msg) from exc
            msg = f"Registry request for '{ident}' failed with status {exc.response.status_code}"
            raise ResolutionError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Registry request for '{ident}' failed: {exc}"
            raise ResolutionError(msg) from exc

        try:
            packument: Any = response.json()
        except ValueError as exc:
            msg = f"Registry returned invalid JSON for '{ident}'"
            raise ResolutionError(msg) from exc
        if not isinstance(packument, dict):
            msg = f"Registry returned unexpected metadata for '{ident}'"
            raise ResolutionError(msg)
        logger.debug("Downloaded metadata for '%s'", ident)
        return cast("dict[str, Any]", packument)


class TarballFetcher(FetcherProtocol):
    """Downloads registry tarballs into the shared archive cache."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        registry_url: str = DEFAULT_REGISTRY_URL,
        cache_root: Path | None = None,
    ) -> None:
        self.client = client
        self.registry_url = registry_url
        self.cache_root = cache_root

    @override
    async def fetch(self, package: ResolvedPackage) -> str:
        ident = package.locator.ident
        name = str(ident)

        try:
            if is_cached(name, package.version, self.cache_root):
                logger.debug("Package '%s@%s' found in cache", name, package.version)
                return read_cached_checksum(name, package.version, self.cache_root)
        except PackageCacheError as exc:
            raise FetchError(exc.message) from exc

        url = tarball_url(self.registry_url, ident, package.version)
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"Failed to fetch '{package.locator}': {url} returned status {exc.response.status_code}"
            raise FetchError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"Failed to fetch '{package.locator}' from {url}: {exc}"
            raise FetchError(msg) from exc

        content = response.content
        try:
            store_in_cache(content, name, package.version, self.cache_root)
        except PackageCacheError as exc:
            raise FetchError(exc.message) from exc

        logger.debug("Package '%s@%s' fetched and cached", name, package.version)
        return compute_checksum(content)
