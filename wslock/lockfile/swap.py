"""Write a workspace lockfile through the canonical lockfile slot.

The host tooling only recognizes one canonical lockfile name per directory,
while per-workspace lockfiles live under another name. Writing therefore
borrows the canonical slot: its occupant is moved aside, the previous
per-workspace lockfile takes its place, the new content is written there, and
everything is moved back. Restoration runs on every exit path.
"""

import asyncio
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from wslock.workspace.exceptions import SwapError

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".wslock-backup"
STAGING_SUFFIX = ".wslock-staging"


class DirectoryLocks:
    """One asyncio lock per directory, for the duration of one batch run."""

    def __init__(self) -> None:
        self._locks: dict[Path, asyncio.Lock] = {}

    def for_directory(self, directory: Path) -> asyncio.Lock:
        key = directory.resolve()
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


def _restore(
    directory: Path,
    canonical_path: Path,
    target_path: Path,
    backup_path: Path,
    slot_holds_target: bool,
    canonical_moved: bool,
) -> None:
    """Undo the renames that were actually made, in reverse order.

    The canonical slot is only emptied into ``target_path`` when it holds the
    target file (moved there, or written by the caller).

    Raises:
        SwapError: With ``recovery_needed`` set when a rename fails.
    """
    try:
        if slot_holds_target and canonical_path.exists():
            os.replace(canonical_path, target_path)
        if canonical_moved:
            os.replace(backup_path, canonical_path)
    except OSError as exc:
        msg = (
            f"Could not restore the lockfile slot in '{directory}': {exc}. Manual recovery needed: "
            f"'{canonical_path.name}' may hold the content meant for '{target_path.name}', "
            f"and the original '{canonical_path.name}' may still be at '{backup_path.name}'."
        )
        raise SwapError(msg, directory=str(directory), recovery_needed=True) from exc


@contextmanager
def borrow_canonical_slot(directory: Path, canonical_name: str, target_name: str) -> Iterator[Path]:
    """Lend the canonical lockfile path to the caller, pre-filled with the current target file.

    Yields:
        The canonical lockfile path, to be written by the caller.

    Raises:
        SwapError: If borrowing fails (after undoing what was done), or if
            restoration fails (``recovery_needed`` set).
    """
    canonical_path = directory / canonical_name
    target_path = directory / target_name
    backup_path = directory / f"{canonical_name}{BACKUP_SUFFIX}"

    if canonical_name == target_name:
        msg = f"Lockfile name '{target_name}' must differ from the canonical lockfile name"
        raise SwapError(msg, directory=str(directory))
    if backup_path.exists():
        msg = f"Leftover '{backup_path.name}' in '{directory}' from an interrupted run: restore it to '{canonical_name}' first"
        raise SwapError(msg, directory=str(directory), recovery_needed=True)

    canonical_moved = False
    target_moved = False
    try:
        if canonical_path.exists():
            os.replace(canonical_path, backup_path)
            canonical_moved = True
        if target_path.exists():
            os.replace(target_path, canonical_path)
            target_moved = True
    except OSError as exc:
        _restore(directory, canonical_path, target_path, backup_path, target_moved, canonical_moved)
        msg = f"Could not borrow '{canonical_name}' in '{directory}': {exc}"
        raise SwapError(msg, directory=str(directory)) from exc

    try:
        yield canonical_path
    finally:
        # From here on the slot belongs to the target, whatever the caller wrote
        _restore(directory, canonical_path, target_path, backup_path, True, canonical_moved)


def _write_atomically(path: Path, content: str) -> None:
    staging_path = path.parent / f"{path.name}{STAGING_SUFFIX}"
    try:
        staging_path.write_text(content, encoding="utf-8")
        os.replace(staging_path, path)
    finally:
        staging_path.unlink(missing_ok=True)


def publish(directory: Path, canonical_name: str, target_name: str, content: str) -> Path:
    """Write ``content`` to ``directory/target_name`` through the canonical slot.

    After success the canonical slot holds whatever it held before (or nothing)
    and ``target_name`` holds ``content``. On a failed write the previous
    ``target_name`` content is left untouched.

    Returns:
        The path of the written lockfile.

    Raises:
        SwapError: If a rename or the write fails.
    """
    try:
        with borrow_canonical_slot(directory, canonical_name, target_name) as canonical_path:
            _write_atomically(canonical_path, content)
    except OSError as exc:
        msg = f"Could not write '{target_name}' in '{directory}': {exc}"
        raise SwapError(msg, directory=str(directory)) from exc

    logger.debug("Published '%s' in '%s'", target_name, directory)
    return directory / target_name


async def publish_serialized(
    locks: DirectoryLocks,
    directory: Path,
    canonical_name: str,
    target_name: str,
    content: str,
) -> Path:
    """Like :func:`publish`, but never runs concurrently with another swap in the same directory."""
    async with locks.for_directory(directory):
        return publish(directory, canonical_name, target_name, content)
