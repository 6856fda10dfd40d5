"""Git repository queries and worktree creation through the ``git`` binary."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Worktree-side status letters (second porcelain column) that mark a file as uncommitted.
_WORKTREE_CHANGES = frozenset("MDTRA")


class GitError(RuntimeError):
    """Raised when a git command fails."""


@dataclass(frozen=True, slots=True)
class WorktreeInfo:
    """A worktree known to the repository."""

    path: Path
    is_main: bool
    branch: str | None = None
    commit: str | None = None


@dataclass(frozen=True, slots=True)
class WorktreeCreateOptions:
    """How a new worktree should be checked out."""

    branch: str | None = None
    new_branch: str | None = None
    detach: bool = False


def _run_git(args: list[str], cwd: Path) -> str:
    logger.debug("Running: git %s", " ".join(args))
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    except subprocess.CalledProcessError as exc:
        message = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise GitError(f"git {args[0]} failed: {message}") from exc
    return completed.stdout


def discover_repo_root(path: Path) -> Path:
    """Return the top-level directory of the repository containing ``path``."""

    output = _run_git(["rev-parse", "--show-toplevel"], path)
    return Path(output.strip())


def list_worktrees(repo_root: Path) -> list[WorktreeInfo]:
    """Return every worktree of the repository, the main one first."""

    output = _run_git(["worktree", "list", "--porcelain"], repo_root)
    worktrees: list[WorktreeInfo] = []

    for block in output.strip().split("\n\n"):
        if not block.strip():
            continue
        fields: dict[str, str] = {}
        for line in block.splitlines():
            key, _, value = line.partition(" ")
            fields[key] = value
        if "worktree" not in fields or "bare" in fields:
            continue

        branch_ref = fields.get("branch")
        branch = branch_ref.removeprefix("refs/heads/") if branch_ref else None
        head = fields.get("HEAD")
        worktrees.append(
            WorktreeInfo(
                path=Path(fields["worktree"]),
                is_main=not worktrees,
                branch=branch,
                commit=head[:8] if head else None,
            )
        )

    logger.debug("Found %d worktrees", len(worktrees))
    return worktrees


def get_main_worktree(repo_root: Path) -> WorktreeInfo:
    for worktree in list_worktrees(repo_root):
        if worktree.is_main:
            return worktree
    raise GitError("No main worktree found")


def get_current_branch(repo_root: Path) -> str | None:
    """Return the checked-out branch, or ``None`` when HEAD is detached."""

    try:
        subprocess.run(
            ["git", "symbolic-ref", "--quiet", "HEAD"],
            cwd=repo_root,
            capture_output=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    except subprocess.CalledProcessError:
        return None
    return _run_git(["symbolic-ref", "--short", "HEAD"], repo_root).strip() or None


def get_local_branches(repo_root: Path) -> list[str]:
    output = _run_git(["for-each-ref", "--format=%(refname:short)", "refs/heads"], repo_root)
    return sorted(line for line in output.splitlines() if line)


def changed_and_untracked_files(repo_root: Path) -> list[str]:
    """List files with uncommitted worktree changes plus untracked files.

    Paths are relative to the repository root, deduplicated and sorted.
    Changes that are only staged in the index are not included.
    """

    logger.debug("Getting unstaged and untracked files")
    output = _run_git(
        ["status", "--porcelain=v1", "-z", "--untracked-files=all", "--ignore-submodules=all"],
        repo_root,
    )

    files: set[str] = set()
    records = output.split("\0")
    index = 0
    while index < len(records):
        record = records[index]
        index += 1
        if len(record) < 4:
            continue
        staged, unstaged, path = record[0], record[1], record[3:]
        if staged in "RC" or unstaged in "RC":
            # renames and copies carry the original path as the next record
            index += 1
        if (staged == "?" and unstaged == "?") or unstaged in _WORKTREE_CHANGES:
            files.add(path)

    result = sorted(files)
    logger.debug("Found %d unstaged/untracked files", len(result))
    return result


def create_worktree(repo_root: Path, path: Path, options: WorktreeCreateOptions) -> None:
    """Create a worktree at ``path`` with ``git worktree add``."""

    logger.info("Creating worktree at %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise GitError(f"Invalid path: {path}") from exc

    args = ["worktree", "add"]
    if options.detach:
        args.append("--detach")
    if options.new_branch:
        args.extend(["-b", options.new_branch])
    args.append(str(path))
    if options.branch:
        args.append(options.branch)

    try:
        _run_git(args, repo_root)
    except GitError as exc:
        raise GitError(f"Failed to create worktree at {path}: {exc}") from exc
    logger.info("Created worktree at %s", path)
