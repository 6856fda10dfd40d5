"""Parallel directory enumeration and file counting."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator

from .errors import CopyError
from .models import FileEntry

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 100

_Batch = list[tuple[Path, bool]]


def _scan_directory(directory: Path, strict: bool) -> tuple[_Batch, list[Path]]:
    files: _Batch = []
    subdirs: list[Path] = []
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                else:
                    files.append((Path(entry.path), entry.is_symlink()))
    except OSError as exc:
        if strict:
            raise CopyError(f"Failed to enumerate directory {directory}: {exc}", path=directory) from exc
        logger.debug("Skipping unreadable directory %s: %s", directory, exc)
        return [], []
    return files, subdirs


def _walk(root: Path, *, strict: bool, max_workers: int | None) -> Iterator[_Batch]:
    """Yield batches of ``(path, is_symlink)`` for every non-directory under ``root``.

    Each level of the tree is scanned concurrently; symlinked directories are
    reported as entries and never descended into.
    """

    pending = [root]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        while pending:
            next_level: list[Path] = []
            for files, subdirs in executor.map(lambda d: _scan_directory(d, strict), pending):
                next_level.extend(subdirs)
                if files:
                    yield files
            pending = next_level


def enumerate_directory(source: Path, target: Path, *, max_workers: int | None = None) -> list[FileEntry]:
    """Return every file and symlink below ``source`` paired with its location under ``target``."""

    entries: list[FileEntry] = []
    for batch in _walk(source, strict=True, max_workers=max_workers):
        for path, is_symlink in batch:
            relative = path.relative_to(source)
            entries.append(
                FileEntry(
                    source=path,
                    target=target / relative,
                    relative_path=relative.as_posix(),
                    is_symlink=is_symlink,
                )
            )

    entries.sort(key=lambda entry: entry.relative_path)
    logger.debug("Enumerated %d entries under %s", len(entries), source)
    return entries


def count_files(path: Path) -> int:
    """Count the files ``path`` stands for.

    A missing path or a symlink counts as 0, a file as 1, and a directory as
    the number of files and symlinks found recursively.
    """

    return count_files_with_progress(path, lambda _count: None)


def count_files_with_progress(
    path: Path,
    on_progress: Callable[[int], None],
    *,
    max_workers: int | None = None,
) -> int:
    """Like :func:`count_files`, reporting the running total every 100 entries and once at the end."""

    if path.is_symlink() or not path.exists():
        return 0

    if path.is_file():
        on_progress(1)
        return 1

    if not path.is_dir():
        return 0

    count = 0
    for batch in _walk(path, strict=False, max_workers=max_workers):
        for _entry in batch:
            count += 1
            if count % PROGRESS_INTERVAL == 0:
                on_progress(count)

    on_progress(count)
    return count
