"""Shared models and enums for worktree-setup."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable


class OperationType(str, Enum):
    """Kinds of operations a configuration can declare."""

    SYMLINK = "symlink"
    COPY = "copy"
    OVERWRITE = "overwrite"
    COPY_GLOB = "copy_glob"
    TEMPLATE = "template"
    UNSTAGED = "unstaged"

    @property
    def label(self) -> str:
        if self is OperationType.COPY_GLOB:
            return "copy"
        return self.value


class OperationResult(str, Enum):
    """Outcome of executing a planned operation."""

    CREATED = "created"
    EXISTS = "exists"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"


class SkipReason:
    """Reasons the planner attaches to operations it predicts will not run."""

    NOT_FOUND = "not found"
    EXISTS = "exists"


class CopyOutcome(str, Enum):
    """Classification reported by the transfer engine."""

    CREATED = "created"
    EXISTS = "exists"
    SOURCE_NOT_FOUND = "source_not_found"


@dataclass(frozen=True, slots=True)
class CopyResult:
    """Result of a single file or directory transfer."""

    outcome: CopyOutcome
    files_copied: int = 0

    @classmethod
    def created(cls, files_copied: int) -> "CopyResult":
        return cls(CopyOutcome.CREATED, files_copied)

    @classmethod
    def exists(cls) -> "CopyResult":
        return cls(CopyOutcome.EXISTS)

    @classmethod
    def source_not_found(cls) -> "CopyResult":
        return cls(CopyOutcome.SOURCE_NOT_FOUND)


@dataclass(frozen=True, slots=True)
class CopyProgress:
    """Progress snapshot emitted while copying."""

    files_total: int
    files_copied: int
    current_file: str | None = None

    @property
    def percentage(self) -> float:
        if self.files_total == 0:
            return 100.0
        return self.files_copied / self.files_total * 100.0


ProgressCallback = Callable[[CopyProgress], None]


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A file or symlink found while enumerating a directory."""

    source: Path
    target: Path
    relative_path: str
    is_symlink: bool


@dataclass(frozen=True, slots=True)
class PlannedOperation:
    """A single unit of work produced by the planner."""

    display_path: str
    operation_type: OperationType
    source: Path
    target: Path
    file_count: int
    is_directory: bool = False
    will_skip: bool = False
    skip_reason: str | None = None


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """Result emitted when applying an operation."""

    path: str
    result: OperationResult


@dataclass(slots=True)
class ApplyResult:
    """Aggregated records for one configuration, grouped by operation kind."""

    symlinks: list[OperationRecord] = field(default_factory=list)
    copies: list[OperationRecord] = field(default_factory=list)
    overwrites: list[OperationRecord] = field(default_factory=list)
    unstaged: list[OperationRecord] = field(default_factory=list)
    templates: list[OperationRecord] = field(default_factory=list)

    def bucket(self, operation_type: OperationType) -> list[OperationRecord]:
        """Return the list that collects records for ``operation_type``."""

        if operation_type is OperationType.SYMLINK:
            return self.symlinks
        if operation_type in (OperationType.COPY, OperationType.COPY_GLOB):
            return self.copies
        if operation_type is OperationType.OVERWRITE:
            return self.overwrites
        if operation_type is OperationType.TEMPLATE:
            return self.templates
        return self.unstaged


@dataclass(frozen=True, slots=True)
class ApplyOptions:
    """Caller overrides applied on top of a configuration."""

    copy_unstaged: bool | None = None
