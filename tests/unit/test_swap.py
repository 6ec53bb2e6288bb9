import asyncio
import os
from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from wslock.lockfile.swap import BACKUP_SUFFIX, DirectoryLocks, borrow_canonical_slot, publish, publish_serialized
from wslock.workspace.exceptions import SwapError

CANONICAL = "yarn.lock"
TARGET = "yarn.lock-workspace"


def file_names(directory: Path) -> list[str]:
    return sorted(path.name for path in directory.iterdir())


class TestPublish:
    """Tests for writing through the borrowed canonical slot."""

    def test_canonical_preserved(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("root lockfile")

        written = publish(tmp_path, CANONICAL, TARGET, "workspace lockfile")

        assert written == tmp_path / TARGET
        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / TARGET).read_text() == "workspace lockfile"
        assert file_names(tmp_path) == [CANONICAL, TARGET]

    def test_no_canonical_before(self, tmp_path: Path):
        publish(tmp_path, CANONICAL, TARGET, "workspace lockfile")

        assert file_names(tmp_path) == [TARGET]

    def test_previous_target_replaced(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("root lockfile")
        (tmp_path / TARGET).write_text("stale")

        publish(tmp_path, CANONICAL, TARGET, "fresh")

        assert (tmp_path / TARGET).read_text() == "fresh"
        assert (tmp_path / CANONICAL).read_text() == "root lockfile"

    def test_same_names_rejected(self, tmp_path: Path):
        with pytest.raises(SwapError, match="must differ"):
            publish(tmp_path, CANONICAL, CANONICAL, "content")

    def test_leftover_backup(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("current")
        (tmp_path / f"{CANONICAL}{BACKUP_SUFFIX}").write_text("older")

        with pytest.raises(SwapError, match="interrupted run") as exc_info:
            publish(tmp_path, CANONICAL, TARGET, "content")

        assert exc_info.value.recovery_needed is True
        assert (tmp_path / CANONICAL).read_text() == "current"
        assert not (tmp_path / TARGET).exists()

    def test_write_failure_restores_everything(self, tmp_path: Path, mocker: MockerFixture):
        (tmp_path / CANONICAL).write_text("root lockfile")
        (tmp_path / TARGET).write_text("previous")
        mocker.patch("wslock.lockfile.swap._write_atomically", side_effect=OSError("disk full"))

        with pytest.raises(SwapError, match="disk full") as exc_info:
            publish(tmp_path, CANONICAL, TARGET, "new content")

        assert exc_info.value.recovery_needed is False
        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / TARGET).read_text() == "previous"
        assert file_names(tmp_path) == [CANONICAL, TARGET]

    def test_failed_backup_leaves_both_files(self, tmp_path: Path, mocker: MockerFixture):
        (tmp_path / CANONICAL).write_text("root lockfile")
        (tmp_path / TARGET).write_text("previous")
        mocker.patch("wslock.lockfile.swap.os.replace", side_effect=OSError("read-only file system"))

        with pytest.raises(SwapError, match="Could not borrow") as exc_info:
            publish(tmp_path, CANONICAL, TARGET, "new content")

        assert exc_info.value.recovery_needed is False
        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / TARGET).read_text() == "previous"
        assert file_names(tmp_path) == [CANONICAL, TARGET]

    def test_failed_target_move_restores_canonical(self, tmp_path: Path, mocker: MockerFixture):
        (tmp_path / CANONICAL).write_text("root lockfile")
        (tmp_path / TARGET).write_text("previous")
        real_replace = os.replace

        def failing_target_move(source: Path, destination: Path) -> None:
            if Path(source).name == TARGET:
                msg = "permission denied"
                raise OSError(msg)
            real_replace(source, destination)

        mocker.patch("wslock.lockfile.swap.os.replace", side_effect=failing_target_move)

        with pytest.raises(SwapError, match="Could not borrow") as exc_info:
            publish(tmp_path, CANONICAL, TARGET, "new content")

        assert exc_info.value.recovery_needed is False
        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / TARGET).read_text() == "previous"
        assert file_names(tmp_path) == [CANONICAL, TARGET]

    def test_restore_failure_needs_recovery(self, tmp_path: Path, mocker: MockerFixture):
        (tmp_path / CANONICAL).write_text("root lockfile")
        real_replace = os.replace

        def failing_restore(source: Path, destination: Path) -> None:
            if Path(destination).name == TARGET:
                msg = "permission denied"
                raise OSError(msg)
            real_replace(source, destination)

        mocker.patch("wslock.lockfile.swap.os.replace", side_effect=failing_restore)

        with pytest.raises(SwapError, match="Manual recovery needed") as exc_info:
            publish(tmp_path, CANONICAL, TARGET, "new content")

        assert exc_info.value.recovery_needed is True
        assert exc_info.value.directory == str(tmp_path)

    def test_borrow_yields_previous_target(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("root lockfile")
        (tmp_path / TARGET).write_text("previous")

        with borrow_canonical_slot(tmp_path, CANONICAL, TARGET) as slot:
            assert slot == tmp_path / CANONICAL
            assert slot.read_text() == "previous"
            assert (tmp_path / f"{CANONICAL}{BACKUP_SUFFIX}").read_text() == "root lockfile"

        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / TARGET).read_text() == "previous"

    def test_borrow_restores_on_error(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("root lockfile")

        with pytest.raises(RuntimeError), borrow_canonical_slot(tmp_path, CANONICAL, TARGET):
            msg = "boom"
            raise RuntimeError(msg)

        assert file_names(tmp_path) == [CANONICAL]


class TestPublishSerialized:
    """Tests for per-directory serialization of swaps."""

    def test_same_directory_same_lock(self, tmp_path: Path):
        locks = DirectoryLocks()
        assert locks.for_directory(tmp_path) is locks.for_directory(tmp_path / ".")
        assert locks.for_directory(tmp_path) is not locks.for_directory(tmp_path / "other")

    def test_concurrent_publishes(self, tmp_path: Path):
        (tmp_path / CANONICAL).write_text("root lockfile")
        locks = DirectoryLocks()

        async def publish_both() -> None:
            await asyncio.gather(
                publish_serialized(locks, tmp_path, CANONICAL, "first.lock", "one"),
                publish_serialized(locks, tmp_path, CANONICAL, "second.lock", "two"),
            )

        asyncio.run(publish_both())

        assert (tmp_path / CANONICAL).read_text() == "root lockfile"
        assert (tmp_path / "first.lock").read_text() == "one"
        assert (tmp_path / "second.lock").read_text() == "two"
