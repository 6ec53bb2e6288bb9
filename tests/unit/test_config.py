import textwrap
from pathlib import Path

import pytest

from wslock.config import (
    CONFIG_FILENAME,
    DEFAULT_CANONICAL_LOCKFILE_FILENAME,
    DEFAULT_JOBS,
    DEFAULT_WORKSPACE_LOCKFILE_FILENAME,
    ConfigSource,
    WslockConfig,
    list_config,
    load_config,
)
from wslock.workspace.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "WSLOCK_WORKSPACE_LOCKFILES",
        "WSLOCK_WORKSPACE_LOCKFILE_FILENAME",
        "WSLOCK_CANONICAL_LOCKFILE_FILENAME",
        "WSLOCK_JOBS",
        "WSLOCK_FAIL_FAST",
        "WSLOCK_REGISTRY_URL",
        "WSLOCK_CACHE_FOLDER",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Tests for resolving the effective configuration."""

    def test_defaults(self, tmp_path: Path):
        config = load_config(tmp_path)
        assert config.workspace_lockfiles is None
        assert config.workspace_lockfile_filename == DEFAULT_WORKSPACE_LOCKFILE_FILENAME
        assert config.canonical_lockfile_filename == DEFAULT_CANONICAL_LOCKFILE_FILENAME
        assert config.jobs == DEFAULT_JOBS
        assert config.fail_fast is False
        assert config.cache_folder is None

    def test_file(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text(
            textwrap.dedent("""\
                workspaceLockfiles = ["@acme/web", "api"]
                workspaceLockfileFilename = "workspace.lock"
                jobs = 2
                failFast = true
                registryUrl = "https://npm.internal/"
            """)
        )
        config = load_config(tmp_path)
        assert config.workspace_lockfiles == ["@acme/web", "api"]
        assert config.workspace_lockfile_filename == "workspace.lock"
        assert config.jobs == 2
        assert config.fail_fast is True
        assert config.registry_url == "https://npm.internal"

    def test_non_list_selection_means_all(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("workspaceLockfiles = true\n")
        assert load_config(tmp_path).workspace_lockfiles is None

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / CONFIG_FILENAME).write_text("jobs = 2\n")
        monkeypatch.setenv("WSLOCK_JOBS", "8")
        monkeypatch.setenv("WSLOCK_WORKSPACE_LOCKFILES", "a, b,")
        monkeypatch.setenv("WSLOCK_FAIL_FAST", "yes")

        config = load_config(tmp_path)

        assert config.jobs == 8
        assert config.workspace_lockfiles == ["a", "b"]
        assert config.fail_fast is True

    def test_overrides_win(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WSLOCK_JOBS", "8")
        config = load_config(tmp_path, overrides={"jobs": 1, "workspace_lockfile_filename": None})
        assert config.jobs == 1
        assert config.workspace_lockfile_filename == DEFAULT_WORKSPACE_LOCKFILE_FILENAME

    def test_invalid_toml(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text("jobs = \n")
        with pytest.raises(ConfigError, match="TOML parsing error"):
            load_config(tmp_path)

    def test_unknown_key(self, tmp_path: Path):
        (tmp_path / CONFIG_FILENAME).write_text('lockfileName = "x"\n')
        with pytest.raises(ConfigError, match="Invalid wslock configuration"):
            load_config(tmp_path)

    @pytest.mark.parametrize("filename", ["", "sub/yarn.lock", "..", "a\\b"])
    def test_invalid_filename(self, filename: str):
        with pytest.raises(ValueError, match="Must be a plain file name"):
            WslockConfig(workspace_lockfile_filename=filename)

    def test_invalid_jobs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WSLOCK_JOBS", "0")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_invalid_registry_url(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WSLOCK_REGISTRY_URL", "registry.npmjs.org")
        with pytest.raises(ConfigError, match="Must start with"):
            load_config(tmp_path)


class TestListConfig:
    """Tests for listing options with their sources."""

    def test_sources(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / CONFIG_FILENAME).write_text('workspaceLockfiles = ["a", "b"]\n')
        monkeypatch.setenv("WSLOCK_JOBS", "3")

        entries = {entry.key: entry for entry in list_config(tmp_path)}

        assert entries["workspaceLockfiles"].value == "a, b"
        assert entries["workspaceLockfiles"].source == ConfigSource.FILE
        assert entries["jobs"].value == "3"
        assert entries["jobs"].source == ConfigSource.ENV
        assert entries["failFast"].value == "False"
        assert entries["failFast"].source == ConfigSource.DEFAULT
        assert entries["cacheFolder"].value == ""
