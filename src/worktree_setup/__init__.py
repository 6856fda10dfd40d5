"""Core package for the worktree-setup project."""

from .cli import app, run
from .config import Config, ConfigError, LoadedConfig, TemplateMapping, discover_configs, load_config
from .errors import CopyError, PlanError
from .git import GitError
from .manager import SetupManager, WorktreeSetupError
from .models import (
    ApplyOptions,
    ApplyResult,
    CopyOutcome,
    CopyProgress,
    CopyResult,
    OperationResult,
    OperationType,
    PlannedOperation,
)
from .operations import apply_config, execute_operation
from .planner import plan_operations, plan_unstaged

__all__ = [
    "Config",
    "ConfigError",
    "LoadedConfig",
    "TemplateMapping",
    "discover_configs",
    "load_config",
    "CopyError",
    "PlanError",
    "GitError",
    "SetupManager",
    "WorktreeSetupError",
    "ApplyOptions",
    "ApplyResult",
    "CopyOutcome",
    "CopyProgress",
    "CopyResult",
    "OperationResult",
    "OperationType",
    "PlannedOperation",
    "apply_config",
    "execute_operation",
    "plan_operations",
    "plan_unstaged",
    "app",
    "run",
]
