from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]


class TomlError(Exception):
    def __init__(self, message: str, lineno: int = 0, colno: int = 0):
        super().__init__(message)
        self.lineno = lineno
        self.colno = colno

    @classmethod
    def from_decode_error(cls, exc: Exception, source: str | None = None) -> TomlError:
        """Build from a tomllib/tomli TOMLDecodeError."""
        message = str(getattr(exc, "msg", str(exc)))
        if source is not None:
            message = f"TOML parsing error in file '{source}': {message}"
        return cls(
            message=message,
            lineno=int(getattr(exc, "lineno", 0)),
            colno=int(getattr(exc, "colno", 0)),
        )


def load_toml_from_content(content: str) -> dict[str, Any]:
    """Load TOML from content string."""
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise TomlError.from_decode_error(exc) from exc


def load_toml_from_path_if_exists(path: Path) -> dict[str, Any] | None:
    """Load TOML from a file path, or return None when the file is absent.

    Raises:
        TomlError: If TOML parsing fails, with file path included
    """
    if not path.is_file():
        return None
    try:
        with path.open("rb") as file:
            return tomllib.load(file)
    except tomllib.TOMLDecodeError as exc:
        raise TomlError.from_decode_error(exc, source=str(path)) from exc
