"""Identity value objects of the workspace graph: idents, descriptors and locators.

A descriptor is an unresolved dependency request (``lodash@^4.0.0``), a locator
is the concrete package it resolves to (``lodash@npm:4.17.21``). Both share the
``ident@suffix`` string form, where the ident may be scoped (``@scope/name``).
"""

import re

from pydantic import BaseModel, ConfigDict

from wslock.workspace.exceptions import ManifestValidationError

WORKSPACE_PROTOCOL = "workspace:"
NPM_PROTOCOL = "npm:"
SELF_REFERENCE = f"{WORKSPACE_PROTOCOL}."

_IDENT_PATTERN = re.compile(r"^(?:@([a-z0-9][a-z0-9._~-]*)/)?([a-z0-9._~-][a-z0-9._~-]*)$", re.IGNORECASE)
_PROTOCOL_PATTERN = re.compile(r"^([a-z][a-z0-9+.-]*:)", re.IGNORECASE)


def is_valid_ident(value: str) -> bool:
    return _IDENT_PATTERN.match(value) is not None


def get_protocol(range_or_reference: str) -> str | None:
    """Return the ``protocol:`` prefix of a range or reference, if any."""
    match = _PROTOCOL_PATTERN.match(range_or_reference)
    return match.group(1) if match else None


class Ident(BaseModel):
    """A package name, optionally scoped."""

    model_config = ConfigDict(frozen=True)

    scope: str | None = None
    name: str

    def __str__(self) -> str:
        if self.scope is None:
            return self.name
        return f"@{self.scope}/{self.name}"


class Descriptor(BaseModel):
    """An (ident, range) dependency request, not yet resolved."""

    model_config = ConfigDict(frozen=True)

    ident: Ident
    range: str

    @property
    def protocol(self) -> str | None:
        return get_protocol(self.range)

    def __str__(self) -> str:
        return f"{self.ident}@{self.range}"


class Locator(BaseModel):
    """An (ident, reference) pair identifying one concrete resolved package."""

    model_config = ConfigDict(frozen=True)

    ident: Ident
    reference: str

    @property
    def protocol(self) -> str | None:
        return get_protocol(self.reference)

    @property
    def is_workspace(self) -> bool:
        return self.reference.startswith(WORKSPACE_PROTOCOL)

    def __str__(self) -> str:
        return f"{self.ident}@{self.reference}"


def parse_ident(value: str) -> Ident:
    """Parse ``name`` or ``@scope/name`` into an Ident.

    Raises:
        ManifestValidationError: If the string is not a valid package name.
    """
    match = _IDENT_PATTERN.match(value)
    if match is None:
        msg = f"Invalid package name '{value}'. Expected 'name' or '@scope/name'."
        raise ManifestValidationError(msg)
    return Ident(scope=match.group(1), name=match.group(2))


def _split_at_suffix(value: str) -> tuple[str, str]:
    # A scoped ident starts with '@', so the separator is the first '@' after index 0
    separator = value.find("@", 1)
    if separator == -1:
        msg = f"Invalid '{value}': expected 'ident@range'."
        raise ManifestValidationError(msg)
    return value[:separator], value[separator + 1 :]


def parse_descriptor(value: str) -> Descriptor:
    """Parse ``ident@range`` into a Descriptor."""
    ident_str, range_str = _split_at_suffix(value)
    try:
        return Descriptor(ident=parse_ident(ident_str), range=range_str)
    except ValueError as exc:
        msg = f"Invalid descriptor '{value}': {exc}"
        raise ManifestValidationError(msg) from exc


def parse_locator(value: str) -> Locator:
    """Parse ``ident@reference`` into a Locator."""
    ident_str, reference = _split_at_suffix(value)
    if not reference:
        msg = f"Invalid locator '{value}': reference must not be empty."
        raise ManifestValidationError(msg)
    return Locator(ident=parse_ident(ident_str), reference=reference)


def make_descriptor(ident: Ident, range_value: str) -> Descriptor:
    return Descriptor(ident=ident, range=range_value)


def make_locator(ident: Ident, reference: str) -> Locator:
    return Locator(ident=ident, reference=reference)
