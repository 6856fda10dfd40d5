"""High level orchestration for setting up a worktree."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .config import ConfigError, LoadedConfig, discover_configs, load_config
from .git import changed_and_untracked_files
from .models import ApplyOptions, OperationResult, PlannedOperation
from .operations import ChangedFilesProvider, OperationProgress, execute_operation
from .planner import CountCallback, plan_operations, plan_unstaged, should_copy_unstaged

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., "subprocess.CompletedProcess[bytes]"]


class WorktreeSetupError(RuntimeError):
    """Raised when a worktree cannot be set up."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit status of a post-setup command."""

    command: str
    returncode: int

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def load_configs(repo_root: Path) -> tuple[list[LoadedConfig], list[tuple[Path, ConfigError]]]:
    """Load every configuration below ``repo_root``.

    Files that fail to load are returned alongside the error instead of
    aborting discovery.
    """

    loaded: list[LoadedConfig] = []
    failures: list[tuple[Path, ConfigError]] = []
    for path in discover_configs(repo_root):
        try:
            loaded.append(load_config(path, repo_root))
        except ConfigError as exc:
            logger.warning("Failed to load %s: %s", path, exc)
            failures.append((path, exc))
    return loaded, failures


def select_configs(configs: Sequence[LoadedConfig], patterns: Iterable[str]) -> list[LoadedConfig]:
    """Return the configurations whose relative or absolute path contains any of ``patterns``."""

    wanted = [pattern for pattern in patterns if pattern]
    return [
        config
        for config in configs
        if any(pattern in config.relative_path or pattern in str(config.config_path) for pattern in wanted)
    ]


def resolve_target(target: Path, cwd: Path) -> Path:
    target = Path(target).expanduser()
    if target.is_absolute():
        return target
    return cwd / target


def ensure_not_main(target: Path, main_worktree: Path) -> None:
    if target.resolve(strict=False) == main_worktree.resolve(strict=False):
        raise WorktreeSetupError("Cannot set up the main worktree. This tool is for secondary worktrees.")


class SetupManager:
    """Plans and applies the selected configurations from the main worktree onto a target."""

    def __init__(
        self,
        configs: Sequence[LoadedConfig],
        source_root: Path,
        target_root: Path,
        options: ApplyOptions | None = None,
        *,
        max_workers: int | None = None,
        changed_files: ChangedFilesProvider | None = None,
    ) -> None:
        self.configs = list(configs)
        self.source_root = source_root
        self.target_root = target_root
        self.options = options or ApplyOptions()
        self.max_workers = max_workers
        self._changed_files = changed_files or changed_and_untracked_files

    def plan(self, on_count: CountCallback | None = None) -> list[PlannedOperation]:
        operations: list[PlannedOperation] = []
        for config in self.configs:
            operations.extend(
                plan_operations(config, self.source_root, self.target_root, self.options, on_count=on_count)
            )
        return operations

    def wants_unstaged(self) -> bool:
        return any(should_copy_unstaged(config, self.options) for config in self.configs)

    def plan_unstaged(self) -> list[PlannedOperation]:
        """Plan copies of uncommitted files, or nothing when no configuration asks for them."""

        if not self.wants_unstaged():
            return []
        files = self._changed_files(self.source_root)
        return plan_unstaged(files, self.source_root, self.target_root)

    def execute(self, op: PlannedOperation, on_progress: OperationProgress | None = None) -> OperationResult:
        return execute_operation(op, on_progress, max_workers=self.max_workers)

    def post_setup_commands(self) -> list[str]:
        """Return the post-setup commands of all configurations, without repeats."""

        commands: list[str] = []
        for config in self.configs:
            for command in config.config.post_setup:
                if command not in commands:
                    commands.append(command)
        return commands

    def run_post_setup(
        self,
        *,
        runner: CommandRunner = subprocess.run,
        on_command: Callable[[str], None] | None = None,
    ) -> list[CommandResult]:
        """Run each post-setup command through ``sh -c`` inside the target worktree.

        A failing command is logged and the remaining commands still run.
        """

        results: list[CommandResult] = []
        for command in self.post_setup_commands():
            if on_command is not None:
                on_command(command)
            try:
                completed = runner(["sh", "-c", command], cwd=self.target_root, check=False)
            except OSError as exc:
                raise WorktreeSetupError(f"Failed to run '{command}': {exc}") from exc

            result = CommandResult(command=command, returncode=completed.returncode)
            if not result.succeeded:
                logger.warning("Command failed: %s (exit status %d)", command, completed.returncode)
            results.append(result)
        return results
