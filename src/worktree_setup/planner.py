"""Turn a loaded configuration into an ordered list of planned operations.

Planning never mutates the filesystem: it only checks for existence and
counts files so the caller can size progress displays before anything runs.
"""

from __future__ import annotations

import glob
import logging
from pathlib import Path, PurePath
from typing import Callable, Iterable

from .config import LoadedConfig
from .errors import PlanError
from .models import ApplyOptions, OperationType, PlannedOperation, SkipReason
from .paths import is_root_relative, resolve_path, strip_root
from .scanner import count_files, count_files_with_progress

logger = logging.getLogger(__name__)

CountCallback = Callable[[str, int], None]


def should_copy_unstaged(config: LoadedConfig, options: ApplyOptions | None = None) -> bool:
    """Return whether uncommitted files should be copied for ``config``."""

    if options is not None and options.copy_unstaged is not None:
        return options.copy_unstaged
    return config.config.copy_unstaged


def plan_operations(
    config: LoadedConfig,
    source_root: Path,
    target_root: Path,
    options: ApplyOptions | None = None,
    *,
    on_count: CountCallback | None = None,
) -> list[PlannedOperation]:
    """Plan every symlink, copy, overwrite, glob copy, and template of ``config``.

    Operations come back grouped by kind in that order, each group in
    declaration order. Uncommitted files are planned separately by
    :func:`plan_unstaged`.
    """

    relative_dir = config.relative_dir
    logger.debug("Planning %s (config dir %s)", config.relative_path, relative_dir)

    operations: list[PlannedOperation] = []
    operations.extend(_plan_symlinks(config.config.symlinks, relative_dir, source_root, target_root))
    operations.extend(
        _plan_copies(
            config.config.copy_paths,
            relative_dir,
            source_root,
            target_root,
            OperationType.COPY,
            on_count,
        )
    )
    operations.extend(
        _plan_copies(
            config.config.overwrite,
            relative_dir,
            source_root,
            target_root,
            OperationType.OVERWRITE,
            on_count,
        )
    )
    operations.extend(_plan_globs(config.config.copy_glob, relative_dir, source_root, target_root))
    operations.extend(_plan_templates(config, relative_dir, source_root, target_root))

    logger.debug("Planned %d operations for %s", len(operations), config.relative_path)
    return operations


def plan_unstaged(files: Iterable[str], source_root: Path, target_root: Path) -> list[PlannedOperation]:
    """Plan overwrites for uncommitted files given relative to the repository root.

    Files that no longer exist in ``source_root`` (reported as deleted) are left out.
    Directories (untracked nested repositories) are planned as directory copies.
    """

    operations: list[PlannedOperation] = []
    for relative in files:
        relative = relative.rstrip("/")
        source = source_root / relative
        if not source.exists():
            logger.debug("Skipping deleted file %s", relative)
            continue
        is_directory = source.is_dir() and not source.is_symlink()
        operations.append(
            PlannedOperation(
                display_path=relative,
                operation_type=OperationType.UNSTAGED,
                source=source,
                target=target_root / relative,
                file_count=count_files(source) if is_directory else 1,
                is_directory=is_directory,
            )
        )
    return operations


def _occupied(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _plan_symlinks(
    declared: Iterable[str],
    relative_dir: PurePath,
    source_root: Path,
    target_root: Path,
) -> list[PlannedOperation]:
    operations: list[PlannedOperation] = []
    for raw in declared:
        source = resolve_path(source_root, relative_dir, raw)
        target = resolve_path(target_root, relative_dir, raw)

        if not source.path.exists():
            skip_reason: str | None = SkipReason.NOT_FOUND
        elif _occupied(target.path):
            skip_reason = SkipReason.EXISTS
        else:
            skip_reason = None

        operations.append(
            PlannedOperation(
                display_path=source.label,
                operation_type=OperationType.SYMLINK,
                source=source.path,
                target=target.path,
                file_count=0,
                will_skip=skip_reason is not None,
                skip_reason=skip_reason,
            )
        )
    return operations


def _plan_copies(
    declared: Iterable[str],
    relative_dir: PurePath,
    source_root: Path,
    target_root: Path,
    operation_type: OperationType,
    on_count: CountCallback | None,
) -> list[PlannedOperation]:
    skip_existing = operation_type is not OperationType.OVERWRITE
    operations: list[PlannedOperation] = []

    for raw in declared:
        source = resolve_path(source_root, relative_dir, raw)
        target = resolve_path(target_root, relative_dir, raw)

        skip_reason: str | None = None
        is_directory = False
        file_count = 0
        if not source.path.exists():
            skip_reason = SkipReason.NOT_FOUND
        elif skip_existing and _occupied(target.path):
            skip_reason = SkipReason.EXISTS
        elif source.path.is_dir():
            is_directory = True
            file_count = _count(source.path, source.label, on_count)
        else:
            file_count = 1

        operations.append(
            PlannedOperation(
                display_path=source.label,
                operation_type=operation_type,
                source=source.path,
                target=target.path,
                file_count=file_count,
                is_directory=is_directory,
                will_skip=skip_reason is not None,
                skip_reason=skip_reason,
            )
        )
    return operations


def _count(path: Path, label: str, on_count: CountCallback | None) -> int:
    if on_count is None:
        return count_files_with_progress(path, lambda _count: None)
    return count_files_with_progress(path, lambda count: on_count(label, count))


def _plan_globs(
    patterns: Iterable[str],
    relative_dir: PurePath,
    source_root: Path,
    target_root: Path,
) -> list[PlannedOperation]:
    operations: list[PlannedOperation] = []

    for pattern in patterns:
        validate_pattern(pattern)
        root_relative = is_root_relative(pattern)
        body = strip_root(pattern) if root_relative else pattern
        search_dir = source_root if root_relative else source_root / relative_dir

        matches = sorted(glob.glob(body, root_dir=search_dir, recursive=True, include_hidden=True))
        logger.debug("Pattern %s matched %d paths under %s", pattern, len(matches), search_dir)

        for match in matches:
            if (search_dir / match).is_dir():
                continue
            declared = "/" + Path(match).as_posix() if root_relative else Path(match).as_posix()
            source = resolve_path(source_root, relative_dir, declared)
            target = resolve_path(target_root, relative_dir, declared)
            exists = _occupied(target.path)

            operations.append(
                PlannedOperation(
                    display_path=source.label,
                    operation_type=OperationType.COPY_GLOB,
                    source=source.path,
                    target=target.path,
                    file_count=1,
                    will_skip=exists,
                    skip_reason=SkipReason.EXISTS if exists else None,
                )
            )
    return operations


def _plan_templates(
    config: LoadedConfig,
    relative_dir: PurePath,
    source_root: Path,
    target_root: Path,
) -> list[PlannedOperation]:
    operations: list[PlannedOperation] = []
    for template in config.config.templates:
        source = resolve_path(source_root, relative_dir, template.source)
        target = resolve_path(target_root, relative_dir, template.target)

        if not source.path.exists():
            skip_reason: str | None = SkipReason.NOT_FOUND
        elif _occupied(target.path):
            skip_reason = SkipReason.EXISTS
        else:
            skip_reason = None

        operations.append(
            PlannedOperation(
                display_path=f"{source.label} -> {target.label}",
                operation_type=OperationType.TEMPLATE,
                source=source.path,
                target=target.path,
                file_count=1,
                will_skip=skip_reason is not None,
                skip_reason=skip_reason,
            )
        )
    return operations


def validate_pattern(pattern: str) -> None:
    """Raise :class:`PlanError` when ``pattern`` is not a usable glob."""

    body = strip_root(pattern)
    if not body:
        raise PlanError(f"Glob pattern error in {pattern!r}: pattern is empty")

    for component in body.split("/"):
        if "***" in component:
            raise PlanError(f"Glob pattern error in {pattern!r}: wildcards are either regular `*` or recursive `**`")
        if "**" in component and component != "**":
            raise PlanError(f"Glob pattern error in {pattern!r}: recursive wildcards must form a single path component")

    index = 0
    while index < len(body):
        if body[index] == "[":
            start = index + 1
            if start < len(body) and body[start] == "!":
                start += 1
            if start < len(body) and body[start] == "]":
                start += 1
            close = body.find("]", start)
            if close == -1:
                raise PlanError(f"Glob pattern error in {pattern!r}: invalid range pattern")
            index = close
        index += 1
