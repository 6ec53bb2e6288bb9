"""Explicit configuration for workspace lockfile generation.

Reads ``wslock.toml`` at the project root, then applies ``WSLOCK_*``
environment variables on top.

Resolution order: environment variables > config file > defaults.
"""

from __future__ import annotations

import os
from enum import unique
from pathlib import Path
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wslock._compat import StrEnum
from wslock._utils.toml_utils import TomlError, load_toml_from_path_if_exists
from wslock.workspace.exceptions import ConfigError

CONFIG_FILENAME = "wslock.toml"

DEFAULT_WORKSPACE_LOCKFILE_FILENAME = "yarn.lock-workspace"
DEFAULT_CANONICAL_LOCKFILE_FILENAME = "yarn.lock"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_JOBS = 4

# ── Types ───────────────────────────────────────────────────────────


@unique
class ConfigSource(StrEnum):
    ENV = "env"
    FILE = "file"
    DEFAULT = "default"


class ConfigEntry(NamedTuple):
    key: str
    value: str
    source: ConfigSource


class WslockConfig(BaseModel):
    """The options recognized by every entry point."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    workspace_lockfiles: list[str] | None = Field(default=None, alias="workspaceLockfiles")
    workspace_lockfile_filename: str = Field(default=DEFAULT_WORKSPACE_LOCKFILE_FILENAME, alias="workspaceLockfileFilename")
    canonical_lockfile_filename: str = Field(default=DEFAULT_CANONICAL_LOCKFILE_FILENAME, alias="canonicalLockfileFilename")
    jobs: int = Field(default=DEFAULT_JOBS, ge=1)
    fail_fast: bool = Field(default=False, alias="failFast")
    registry_url: str = Field(default=DEFAULT_REGISTRY_URL, alias="registryUrl")
    cache_folder: Path | None = Field(default=None, alias="cacheFolder")

    @field_validator("workspace_lockfiles", mode="before")
    @classmethod
    def validate_workspace_lockfiles(cls, value: Any) -> Any:
        # Anything but a list means "all workspaces"
        if not isinstance(value, list):
            return None
        return value

    @field_validator("workspace_lockfile_filename", "canonical_lockfile_filename")
    @classmethod
    def validate_filename(cls, filename: str) -> str:
        stripped = filename.strip()
        if not stripped or "/" in stripped or "\\" in stripped or stripped in {".", ".."}:
            msg = f"Invalid lockfile name '{filename}'. Must be a plain file name."
            raise ValueError(msg)
        return stripped

    @field_validator("registry_url")
    @classmethod
    def validate_registry_url(cls, registry_url: str) -> str:
        if not registry_url.startswith(("https://", "http://")):
            msg = f"Invalid registry URL '{registry_url}'. Must start with 'https://' or 'http://'."
            raise ValueError(msg)
        return registry_url.rstrip("/")


# ── Environment ─────────────────────────────────────────────────────

# Map from file key to environment variable
_ENV_KEYS: dict[str, str] = {
    "workspaceLockfiles": "WSLOCK_WORKSPACE_LOCKFILES",
    "workspaceLockfileFilename": "WSLOCK_WORKSPACE_LOCKFILE_FILENAME",
    "canonicalLockfileFilename": "WSLOCK_CANONICAL_LOCKFILE_FILENAME",
    "jobs": "WSLOCK_JOBS",
    "failFast": "WSLOCK_FAIL_FAST",
    "registryUrl": "WSLOCK_REGISTRY_URL",
    "cacheFolder": "WSLOCK_CACHE_FOLDER",
}

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_value(file_key: str, raw: str) -> Any:
    """Convert an environment string to the shape the config file would hold."""
    match file_key:
        case "workspaceLockfiles":
            return [item.strip() for item in raw.split(",") if item.strip()]
        case "failFast":
            return raw.strip().lower() in _TRUE_VALUES
        case _:
            return raw


def _read_config_file(project_root: Path) -> dict[str, Any]:
    try:
        return load_toml_from_path_if_exists(project_root / CONFIG_FILENAME) or {}
    except TomlError as exc:
        raise ConfigError(str(exc)) from exc


# ── Public API ─────────────────────────────────────────────────────


def load_config(project_root: Path, overrides: dict[str, Any] | None = None) -> WslockConfig:
    """Load the configuration: overrides > env > file > defaults.

    Args:
        project_root: Directory holding the root ``package.json`` (and ``wslock.toml``).
        overrides: Values set explicitly by the caller (e.g. CLI flags), keyed by field name.

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid.
    """
    merged: dict[str, Any] = dict(_read_config_file(project_root))

    for file_key, env_name in _ENV_KEYS.items():
        env_val = os.environ.get(env_name)
        if env_val is not None:
            merged[file_key] = _env_value(file_key, env_val)

    try:
        config = WslockConfig.model_validate(merged)
        if overrides:
            config = WslockConfig.model_validate({**config.model_dump(), **{key: value for key, value in overrides.items() if value is not None}})
    except ValidationError as exc:
        msg = f"Invalid wslock configuration: {exc}"
        raise ConfigError(msg) from exc
    return config


def list_config(project_root: Path) -> list[ConfigEntry]:
    """List every option with its effective value and where it comes from."""
    file_entries = _read_config_file(project_root)
    config = load_config(project_root)
    values = config.model_dump(by_alias=True)

    result: list[ConfigEntry] = []
    for file_key, env_name in _ENV_KEYS.items():
        if os.environ.get(env_name) is not None:
            source = ConfigSource.ENV
        elif file_key in file_entries:
            source = ConfigSource.FILE
        else:
            source = ConfigSource.DEFAULT
        value: Any = values[file_key]
        display = ", ".join(value) if isinstance(value, list) else ("" if value is None else str(value))
        result.append(ConfigEntry(key=file_key, value=display, source=source))
    return result
