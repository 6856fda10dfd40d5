"""Execution of planned operations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .config import LoadedConfig
from .errors import CopyError
from .filesystem import copy_directory, copy_file, create_symlink, overwrite_file, remove_path
from .git import changed_and_untracked_files
from .models import (
    ApplyOptions,
    ApplyResult,
    CopyOutcome,
    CopyProgress,
    CopyResult,
    OperationRecord,
    OperationResult,
    OperationType,
    PlannedOperation,
    SkipReason,
)
from .planner import plan_operations, plan_unstaged, should_copy_unstaged

logger = logging.getLogger(__name__)

OperationProgress = Callable[[int, int], None]
ChangedFilesProvider = Callable[[Path], list[str]]

_COPY_KINDS = frozenset({OperationType.COPY, OperationType.COPY_GLOB, OperationType.TEMPLATE})


def _to_result(result: CopyResult) -> OperationResult:
    if result.outcome is CopyOutcome.CREATED:
        return OperationResult.CREATED
    if result.outcome is CopyOutcome.EXISTS:
        return OperationResult.EXISTS
    return OperationResult.SKIPPED


def execute_operation(
    op: PlannedOperation,
    on_progress: OperationProgress | None = None,
    *,
    max_workers: int | None = None,
) -> OperationResult:
    """Perform ``op`` and classify what happened.

    Operations the planner marked as skipped are classified without touching
    the filesystem. Directory transfers report ``(completed, total)`` through
    ``on_progress`` and always finish with ``(file_count, file_count)``.
    """

    if op.will_skip:
        if op.skip_reason == SkipReason.EXISTS:
            return OperationResult.EXISTS
        return OperationResult.SKIPPED

    progress = on_progress or (lambda _completed, _total: None)

    def forward(snapshot: CopyProgress) -> None:
        progress(snapshot.files_copied, snapshot.files_total)

    if op.operation_type is OperationType.SYMLINK:
        return create_symlink(op.source, op.target)

    if op.operation_type in _COPY_KINDS:
        if op.is_directory:
            result = copy_directory(op.source, op.target, forward, max_workers=max_workers)
            progress(op.file_count, op.file_count)
            return _to_result(result)
        return _to_result(copy_file(op.source, op.target, forward))

    existed = op.target.exists() or op.target.is_symlink()
    if op.is_directory:
        if existed:
            logger.debug("Replacing existing directory %s", op.target)
            try:
                remove_path(op.target)
            except OSError as exc:
                raise CopyError(f"Failed to remove {op.target}: {exc}", path=op.target) from exc
        result = copy_directory(op.source, op.target, forward, max_workers=max_workers)
        progress(op.file_count, op.file_count)
    else:
        result = overwrite_file(op.source, op.target, forward)

    if result.outcome is CopyOutcome.CREATED and existed:
        return OperationResult.OVERWRITTEN
    return _to_result(result)


def apply_config(
    config: LoadedConfig,
    source_root: Path,
    target_root: Path,
    options: ApplyOptions | None = None,
    *,
    changed_files: ChangedFilesProvider | None = None,
) -> ApplyResult:
    """Plan and execute everything ``config`` declares, collecting the records per kind."""

    logger.info("Applying config %s to %s", config.relative_path, target_root)
    result = ApplyResult()

    operations = plan_operations(config, source_root, target_root, options)
    if should_copy_unstaged(config, options):
        logger.info("Copying unstaged and untracked files")
        provider = changed_files or changed_and_untracked_files
        operations.extend(plan_unstaged(provider(source_root), source_root, target_root))

    for op in operations:
        outcome = execute_operation(op)
        result.bucket(op.operation_type).append(OperationRecord(path=op.display_path, result=outcome))

    return result
