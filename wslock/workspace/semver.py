# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownParameterType=false, reportUnknownArgumentType=false
"""Thin typed wrapper around semantic_version for npm range evaluation.

Provides parsing, range matching, and highest-version selection used by the
workspace matcher and the registry resolver.

Note: semantic_version has no type stubs, so Pyright unknown-type checks are
disabled at file level for this wrapper module.
"""

from semantic_version import NpmSpec, Version  # type: ignore[import-untyped]


class SemVerError(Exception):
    """Raised for semver parse failures."""


def parse_version(version_str: str) -> Version:
    """Parse a version string into a semantic_version.Version.

    Strips a leading 'v' prefix if present (npm tolerates ``v1.2.3``).

    Raises:
        SemVerError: If the version string is not valid semver.
    """
    cleaned = version_str.strip().removeprefix("v")
    try:
        return Version(cleaned)
    except ValueError as exc:
        msg = f"Invalid semver version: {version_str!r}"
        raise SemVerError(msg) from exc


def parse_range(range_str: str) -> NpmSpec:
    """Parse an npm range (``^1.2.3``, ``>=1 <2``, ``1.x || 2.x``) into an NpmSpec.

    An empty range means "any version", like npm.

    Raises:
        SemVerError: If the range is not valid npm syntax.
    """
    cleaned = range_str.strip() or "*"
    try:
        return NpmSpec(cleaned)
    except ValueError as exc:
        msg = f"Invalid semver range: {range_str!r}"
        raise SemVerError(msg) from exc


def is_valid_range(range_str: str) -> bool:
    try:
        parse_range(range_str)
    except SemVerError:
        return False
    return True


def version_satisfies(version: Version, spec: NpmSpec) -> bool:
    result: bool = spec.match(version)
    return result


def range_accepts(range_str: str, version_str: str) -> bool:
    """Check whether a version string satisfies a range string.

    Invalid versions or ranges never match.
    """
    try:
        return version_satisfies(parse_version(version_str), parse_range(range_str))
    except SemVerError:
        return False


def select_maximum_version(
    available_versions: list[Version],
    spec: NpmSpec,
) -> Version | None:
    """Select the highest version satisfying an npm range.

    npm and yarn pick the newest matching release, unlike Minimum Version
    Selection.

    Returns:
        The highest matching version, or None if no version matches.
    """
    for version in sorted(available_versions, reverse=True):
        if spec.match(version):
            return version
    return None
