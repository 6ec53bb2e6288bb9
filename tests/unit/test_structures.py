import pytest

from wslock.workspace.exceptions import ManifestValidationError
from wslock.workspace.structures import (
    SELF_REFERENCE,
    Ident,
    get_protocol,
    is_valid_ident,
    make_descriptor,
    make_locator,
    parse_descriptor,
    parse_ident,
    parse_locator,
)


class TestIdent:
    """Tests for package name parsing."""

    def test_parse_plain(self):
        ident = parse_ident("lodash")
        assert ident == Ident(name="lodash")
        assert str(ident) == "lodash"

    def test_parse_scoped(self):
        ident = parse_ident("@types/node")
        assert ident.scope == "types"
        assert ident.name == "node"
        assert str(ident) == "@types/node"

    @pytest.mark.parametrize("value", ["", "@scope", "@/name", "a b", "foo/bar/baz"])
    def test_parse_invalid(self, value: str):
        with pytest.raises(ManifestValidationError, match="Invalid package name"):
            parse_ident(value)

    def test_is_valid_ident(self):
        assert is_valid_ident("@acme/web") is True
        assert is_valid_ident("not valid") is False

    def test_idents_are_hashable_values(self):
        assert {parse_ident("a"), parse_ident("a")} == {Ident(name="a")}


class TestDescriptorAndLocator:
    """Tests for descriptor/locator parsing and string forms."""

    def test_parse_descriptor(self):
        descriptor = parse_descriptor("lodash@^4.17.0")
        assert descriptor.ident == Ident(name="lodash")
        assert descriptor.range == "^4.17.0"
        assert descriptor.protocol is None

    def test_parse_scoped_descriptor(self):
        descriptor = parse_descriptor("@acme/lib@workspace:packages/lib")
        assert str(descriptor.ident) == "@acme/lib"
        assert descriptor.protocol == "workspace:"
        assert str(descriptor) == "@acme/lib@workspace:packages/lib"

    def test_parse_descriptor_without_range(self):
        with pytest.raises(ManifestValidationError, match="expected 'ident@range'"):
            parse_descriptor("lodash")

    def test_parse_descriptor_empty_range(self):
        descriptor = parse_descriptor("lodash@")
        assert descriptor.range == ""
        assert str(descriptor) == "lodash@"

    def test_parse_locator(self):
        locator = parse_locator("lodash@npm:4.17.21")
        assert locator.reference == "npm:4.17.21"
        assert locator.protocol == "npm:"
        assert locator.is_workspace is False

    def test_workspace_locator(self):
        locator = make_locator(parse_ident("@acme/web"), SELF_REFERENCE)
        assert locator.is_workspace is True
        assert str(locator) == "@acme/web@workspace:."

    def test_parse_locator_empty_reference(self):
        with pytest.raises(ManifestValidationError, match="reference must not be empty"):
            parse_locator("lodash@")

    def test_descriptors_compare_by_value(self):
        assert make_descriptor(parse_ident("a"), "^1.0.0") == parse_descriptor("a@^1.0.0")
        assert make_descriptor(parse_ident("a"), "^1.0.0") != parse_descriptor("a@^2.0.0")

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("workspace:*", "workspace:"),
            ("npm:^1.0.0", "npm:"),
            ("^1.0.0", None),
            ("latest", None),
        ],
    )
    def test_get_protocol(self, value: str, expected: str | None):
        assert get_protocol(value) == expected
