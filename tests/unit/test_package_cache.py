import hashlib
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from wslock.resolution.package_cache import (
    compute_checksum,
    get_cached_archive_path,
    get_default_cache_root,
    is_cached,
    read_cached_checksum,
    store_in_cache,
)
from wslock.workspace.exceptions import PackageCacheError


class TestPackageCache:
    """Tests for the wslock.resolution.package_cache module."""

    # --- get_default_cache_root ---

    def test_get_default_cache_root(self):
        root = get_default_cache_root()
        assert root.parts[-2:] == (".wslock", "cache")

    # --- get_cached_archive_path ---

    def test_get_cached_archive_path_scoped(self, tmp_path: Path):
        result = get_cached_archive_path("@types/node", "20.1.0", tmp_path)
        assert result == (tmp_path / "@types" / "node" / "20.1.0.tgz").resolve()

    def test_get_cached_archive_path_traversal_ident(self, tmp_path: Path):
        with pytest.raises(PackageCacheError, match="Path traversal"):
            get_cached_archive_path("../../etc/passwd", "1.0.0", tmp_path)

    def test_get_cached_archive_path_traversal_version(self, tmp_path: Path):
        with pytest.raises(PackageCacheError, match="Path traversal"):
            get_cached_archive_path("lodash", "../../../../etc", tmp_path)

    # --- is_cached ---

    def test_is_cached_nonexistent(self, tmp_path: Path):
        assert is_cached("lodash", "4.17.21", tmp_path) is False

    def test_is_cached_empty_archive(self, tmp_path: Path):
        (tmp_path / "lodash").mkdir()
        (tmp_path / "lodash" / "4.17.21.tgz").write_bytes(b"")
        assert is_cached("lodash", "4.17.21", tmp_path) is False

    def test_is_cached_after_store(self, tmp_path: Path):
        store_in_cache(b"archive", "lodash", "4.17.21", tmp_path)
        assert is_cached("lodash", "4.17.21", tmp_path) is True

    # --- checksums ---

    def test_compute_checksum(self):
        assert compute_checksum(b"abc") == hashlib.sha512(b"abc").hexdigest()

    def test_read_cached_checksum(self, tmp_path: Path):
        store_in_cache(b"archive", "lodash", "4.17.21", tmp_path)
        assert read_cached_checksum("lodash", "4.17.21", tmp_path) == compute_checksum(b"archive")

    def test_read_cached_checksum_missing(self, tmp_path: Path):
        with pytest.raises(PackageCacheError, match="Failed to read cached package"):
            read_cached_checksum("lodash", "4.17.21", tmp_path)

    # --- store_in_cache ---

    def test_store_in_cache_leaves_no_staging(self, tmp_path: Path):
        final_path = store_in_cache(b"archive", "@types/node", "20.1.0", tmp_path)
        assert final_path.read_bytes() == b"archive"
        assert list(final_path.parent.iterdir()) == [final_path]

    def test_store_in_cache_replace_failure(self, tmp_path: Path, mocker: MockerFixture):
        mocker.patch("wslock.resolution.package_cache.os.replace", side_effect=OSError("disk full"))
        with pytest.raises(PackageCacheError, match="disk full"):
            store_in_cache(b"archive", "lodash", "4.17.21", tmp_path)
        assert not (tmp_path / "lodash" / "4.17.21.tgz.staging").exists()
