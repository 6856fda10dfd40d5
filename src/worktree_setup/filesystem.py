"""File transfer primitives: single files, directory trees and symlinks."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from .errors import CopyError
from .models import CopyProgress, CopyResult, FileEntry, OperationResult, ProgressCallback
from .scanner import PROGRESS_INTERVAL, enumerate_directory

if sys.platform.startswith("linux"):
    import fcntl
else:
    fcntl = None

logger = logging.getLogger(__name__)

# linux/fs.h: _IOW(0x94, 9, int)
_FICLONE = 0x40049409


class ProgressTracker:
    """Thread-safe counter of entries copied so far."""

    def __init__(self, total: int = 0) -> None:
        self._lock = threading.Lock()
        self._total = total
        self._copied = 0

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def increment(self) -> int:
        with self._lock:
            self._copied += 1
            return self._copied

    @property
    def total(self) -> int:
        return self._total

    @property
    def copied(self) -> int:
        with self._lock:
            return self._copied

    def snapshot(self, current_file: str | None = None) -> CopyProgress:
        with self._lock:
            return CopyProgress(self._total, self._copied, current_file)


def _noop(_progress: CopyProgress) -> None:
    return None


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory of ``path`` exists."""

    _make_dirs(path.parent)


def _make_dirs(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CopyError(f"Failed to create directory {directory}: {exc}", path=directory) from exc


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not path.exists() and not path.is_symlink():
        return
    if path.is_symlink() or not path.is_dir():
        path.unlink()
        return
    shutil.rmtree(path)


def _reflink(source: Path, target: Path) -> bool:
    if fcntl is None:
        return False
    try:
        with source.open("rb") as src, target.open("wb") as dst:
            fcntl.ioctl(dst.fileno(), _FICLONE, src.fileno())
    except OSError as exc:
        logger.debug("Reflink unavailable for %s: %s", source, exc)
        return False
    return True


def clone_file(source: Path, target: Path) -> None:
    """Copy ``source`` to ``target``, sharing storage blocks when the filesystem allows it."""

    try:
        if _reflink(source, target):
            shutil.copystat(source, target)
            logger.debug("Reflinked %s -> %s", source, target)
            return
        shutil.copy2(source, target)
    except OSError as exc:
        raise CopyError(f"Failed to copy {source} to {target}: {exc}", path=source, target=target) from exc
    logger.debug("Copied %s -> %s", source, target)


def copy_symlink(source: Path, target: Path) -> None:
    """Recreate the symlink ``source`` at ``target`` with the same recorded link target."""

    try:
        link = os.readlink(source)
    except OSError as exc:
        raise CopyError(f"Failed to read symlink {source}: {exc}", path=source) from exc

    try:
        os.symlink(link, target, target_is_directory=(source.parent / link).is_dir())
    except OSError as exc:
        raise CopyError(f"Failed to create symlink {target}: {exc}", path=source, target=target) from exc
    logger.debug("Symlinked %s -> %s (target: %s)", source, target, link)


def _transfer_single(source: Path, target: Path, on_progress: ProgressCallback) -> None:
    on_progress(CopyProgress(1, 0, str(source)))
    ensure_parent(target)
    clone_file(source, target)
    on_progress(CopyProgress(1, 1, str(source)))


def copy_file(source: Path, target: Path, on_progress: ProgressCallback | None = None) -> CopyResult:
    """Copy a single file unless ``target`` already exists."""

    logger.debug("Copying file: %s -> %s", source, target)
    if not source.exists():
        logger.debug("Source does not exist")
        return CopyResult.source_not_found()
    if target.exists() or target.is_symlink():
        logger.debug("Target already exists")
        return CopyResult.exists()

    _transfer_single(source, target, on_progress or _noop)
    return CopyResult.created(1)


def overwrite_file(source: Path, target: Path, on_progress: ProgressCallback | None = None) -> CopyResult:
    """Copy a single file, replacing whatever ``target`` holds.

    A symlink or directory at ``target`` is removed first, so a symlink is
    never written through. When ``target`` already resolves to ``source``
    nothing is copied and the result is ``EXISTS``.
    """

    logger.debug("Overwriting file: %s -> %s", source, target)
    if not source.exists():
        logger.debug("Source does not exist")
        return CopyResult.source_not_found()

    if target.is_symlink():
        try:
            target.unlink()
        except OSError as exc:
            raise CopyError(f"Failed to remove symlink {target}: {exc}", path=target) from exc
    elif target.is_dir():
        logger.debug("Removing directory in the way: %s", target)
        try:
            remove_path(target)
        except OSError as exc:
            raise CopyError(f"Failed to remove {target}: {exc}", path=target) from exc
    elif target.exists() and os.path.samefile(source, target):
        logger.debug("Target is the source file itself")
        return CopyResult.exists()

    _transfer_single(source, target, on_progress or _noop)
    return CopyResult.created(1)


def _copy_entry(entry: FileEntry, tracker: ProgressTracker) -> FileEntry:
    if entry.is_symlink:
        copy_symlink(entry.source, entry.target)
    else:
        clone_file(entry.source, entry.target)
    tracker.increment()
    return entry


def copy_directory(
    source: Path,
    target: Path,
    on_progress: ProgressCallback | None = None,
    *,
    max_workers: int | None = None,
) -> CopyResult:
    """Copy the tree at ``source`` to ``target`` unless ``target`` already exists.

    Files are copied concurrently. Every parent directory is created before
    the first file is copied, and the first failure stops the remaining work
    and is raised; files copied before it stay on disk.

    ``on_progress`` is called from the calling thread at the start, after
    every 100th completed entry, after the last one, and once at the end.
    """

    report = on_progress or _noop
    logger.debug("Copying directory: %s -> %s", source, target)

    if not source.exists():
        logger.debug("Source does not exist")
        return CopyResult.source_not_found()
    if target.exists() or target.is_symlink():
        logger.debug("Target already exists")
        return CopyResult.exists()

    entries = enumerate_directory(source, target, max_workers=max_workers)
    total = len(entries)
    logger.debug("Found %d files to copy", total)

    if total == 0:
        _make_dirs(target)
        return CopyResult.created(0)

    tracker = ProgressTracker(total)
    report(tracker.snapshot())

    for directory in sorted({entry.target.parent for entry in entries}):
        _make_dirs(directory)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_copy_entry, entry, tracker) for entry in entries]
        try:
            for done, future in enumerate(as_completed(futures), start=1):
                entry = future.result()
                if done % PROGRESS_INTERVAL == 0 or done == total:
                    report(tracker.snapshot(str(entry.source)))
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise

    report(tracker.snapshot())
    return CopyResult.created(total)


def create_symlink(source: Path, target: Path) -> OperationResult:
    """Point ``target`` at ``source``, replacing a non-symlink occupant of ``target``."""

    logger.debug("Creating symlink: %s -> %s", target, source)

    if target.is_symlink():
        logger.debug("Target is already a symlink")
        return OperationResult.EXISTS

    if not source.exists():
        logger.debug("Source does not exist: %s", source)
        return OperationResult.SKIPPED

    ensure_parent(target)

    if target.exists():
        logger.debug("Removing existing path: %s", target)
        try:
            remove_path(target)
        except OSError as exc:
            raise CopyError(f"Failed to remove {target}: {exc}", path=target) from exc

    try:
        os.symlink(source, target, target_is_directory=source.is_dir())
    except OSError as exc:
        raise CopyError(
            f"Failed to create symlink from {source} to {target}: {exc}", path=source, target=target
        ) from exc

    return OperationResult.CREATED
