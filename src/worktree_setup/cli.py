"""Command-line interface for worktree-setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, ConfigError, LoadedConfig, render_starter_config
from .errors import CopyError, PlanError
from .git import (
    GitError,
    WorktreeCreateOptions,
    create_worktree,
    discover_repo_root,
    get_current_branch,
    get_local_branches,
    get_main_worktree,
)
from .manager import (
    SetupManager,
    WorktreeSetupError,
    ensure_not_main,
    load_configs,
    resolve_target,
    select_configs,
)
from .models import ApplyOptions, OperationResult, OperationType, PlannedOperation
from .progress import ProgressDisplay

app = typer.Typer(help="Set up git worktrees with project-specific configurations")
console = Console()


def configure_logging(verbose: bool) -> None:
    """Route log records through rich; debug output only when ``verbose`` is set."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Check that you can write to the target worktree.")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    if isinstance(exc, GitError):
        console.print(f"[red]Git error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)
    if isinstance(exc, (CopyError, PlanError, WorktreeSetupError)):
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)
    raise exc


def format_result(result: OperationResult, operation_type: OperationType) -> str:
    """Return the word shown next to a finished operation."""

    if result is OperationResult.CREATED:
        if operation_type is OperationType.SYMLINK:
            return "symlink"
        if operation_type is OperationType.TEMPLATE:
            return "created"
        return "copied"
    return result.value


def _print_config_list(configs: Sequence[LoadedConfig]) -> None:
    console.print(f"Found {len(configs)} config{'' if len(configs) == 1 else 's'}:")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Config")
    table.add_column("Description", overflow="fold")
    for config in configs:
        table.add_row(config.display_name, config.relative_path, config.config.description)
    console.print(table)


def _discover(repo_root: Path) -> list[LoadedConfig]:
    configs, failures = load_configs(repo_root)
    for path, exc in failures:
        console.print(f"[yellow]Warning:[/yellow] Failed to load {escape(str(path))}: {escape(str(exc))}")
    return configs


def _prompt_select_configs(configs: Sequence[LoadedConfig]) -> list[LoadedConfig]:
    for index, config in enumerate(configs, start=1):
        console.print(f"  [cyan]{index}[/cyan]. {escape(config.relative_path)} - {escape(config.config.description)}")

    while True:
        answer = typer.prompt("Select configurations to apply (comma-separated numbers)", default="all")
        if answer.strip().lower() == "all":
            return list(configs)
        try:
            indices = [int(part) for part in answer.replace(" ", "").split(",") if part]
        except ValueError:
            console.print("[red]Please enter numbers separated by commas.[/red]")
            continue
        if all(1 <= index <= len(configs) for index in indices):
            return [configs[index - 1] for index in dict.fromkeys(indices)]
        console.print(f"[red]Choose numbers between 1 and {len(configs)}.[/red]")


def _prompt_create_options(repo_root: Path, target: Path) -> WorktreeCreateOptions | None:
    if not typer.confirm(f"Worktree '{target}' does not exist. Create it?", default=True):
        return None

    current = get_current_branch(repo_root)
    branches = get_local_branches(repo_root)
    console.print(f"Current branch: [cyan]{escape(current or '(detached)')}[/cyan]")

    while True:
        mode = typer.prompt("Create a [n]ew branch, check out an [e]xisting branch, or [d]etach HEAD?", default="n")
        mode = mode.strip().lower()[:1]
        if mode == "n":
            name = typer.prompt("New branch name", default=target.name)
            return WorktreeCreateOptions(new_branch=name)
        if mode == "e":
            name = typer.prompt("Branch to check out", default=current or "")
            if name in branches:
                return WorktreeCreateOptions(branch=name)
            console.print(f"[red]Unknown branch '{escape(name)}'.[/red]")
            continue
        if mode == "d":
            return WorktreeCreateOptions(detach=True)


def _run_operations(manager: SetupManager, operations: Sequence[PlannedOperation], display: ProgressDisplay) -> None:
    for op in operations:
        if op.will_skip:
            display.print_result(op.display_path, op.skip_reason or "skipped", success=False)
            continue

        if op.is_directory and op.file_count > 1:
            with display.file_bar(op.display_path, op.file_count) as on_progress:
                result = manager.execute(op, on_progress)
            display.print_result_with_count(op.display_path, format_result(result, op.operation_type), op.file_count)
        else:
            result = manager.execute(op)
            display.print_result(op.display_path, format_result(result, op.operation_type))


@app.command()
def setup(
    target_path: Path | None = typer.Argument(None, help="Path to the target worktree"),
    branch: str | None = typer.Option(None, "--branch", help="Create the worktree from this existing branch"),
    new_branch: str | None = typer.Option(None, "--new-branch", help="Create a new branch for the worktree"),
    config: list[str] = typer.Option(None, "--config", "-c", help="Only apply configs whose path contains this"),
    no_install: bool = typer.Option(False, "--no-install", help="Skip running post-setup commands"),
    unstaged: bool = typer.Option(False, "--unstaged", help="Copy unstaged and untracked files from the main worktree"),
    no_unstaged: bool = typer.Option(False, "--no-unstaged", help="Never copy unstaged files (overrides config)"),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Run without prompts"),
    no_progress: bool = typer.Option(False, "--no-progress", help="Disable progress bars"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Apply worktree configurations from the main worktree to a secondary one."""

    configure_logging(verbose)
    try:
        cwd = Path.cwd()
        repo_root = discover_repo_root(cwd)
        console.print(f"\n🌳 [bold]Worktree Setup[/bold]\n\nRepository: [cyan]{escape(str(repo_root))}[/cyan]\n")

        configs = _discover(repo_root)
        if not configs:
            console.print(f"No worktree configs found. Create a {DEFAULT_CONFIG_FILENAME} to define your setup.")
            return
        _print_config_list(configs)

        if config:
            selected = select_configs(configs, config)
        elif non_interactive:
            selected = configs
        else:
            selected = _prompt_select_configs(configs)
        if not selected:
            console.print("No configs selected. Exiting.")
            return

        if target_path is None:
            if non_interactive:
                raise WorktreeSetupError("Target path is required in non-interactive mode.")
            target_path = Path(typer.prompt("Path for the worktree"))
        target = resolve_target(target_path, cwd)

        main_worktree = get_main_worktree(repo_root)
        ensure_not_main(target, main_worktree.path)

        if not target.exists():
            if non_interactive:
                options = WorktreeCreateOptions(branch=branch, new_branch=new_branch)
            elif branch or new_branch:
                options = WorktreeCreateOptions(branch=branch, new_branch=new_branch)
            else:
                options = _prompt_create_options(repo_root, target)
            if options is not None:
                console.print(f"Creating worktree at {escape(str(target))}...")
                create_worktree(repo_root, target, options)

        if not target.exists():
            raise WorktreeSetupError(f"Target path does not exist: {target}")

        console.print(f"\nSetting up worktree: {escape(str(target))}")
        console.print(f"Main worktree: {escape(str(main_worktree.path))}\n")

        copy_unstaged = False if no_unstaged else (True if unstaged else None)
        manager = SetupManager(selected, main_worktree.path, target, ApplyOptions(copy_unstaged=copy_unstaged))
        display = ProgressDisplay(console, enabled=not no_progress)

        with display.scanning() as on_count:
            operations = manager.plan(on_count=on_count)
        _run_operations(manager, operations, display)

        if manager.wants_unstaged():
            with display.status("Checking git status..."):
                unstaged_operations = manager.plan_unstaged()
            _run_operations(manager, unstaged_operations, display)

        console.print()
        commands = manager.post_setup_commands()
        if commands and not no_install:
            if non_interactive or typer.confirm("Run post-setup commands?", default=True):
                console.print("Running post-setup commands:")
                results = manager.run_post_setup(on_command=lambda command: console.print(f"  [dim]$[/dim] {escape(command)}"))
                for result in results:
                    if not result.succeeded:
                        console.print(f"[yellow]Warning:[/yellow] Command failed: {escape(result.command)}")
                console.print()

        console.print("✅ Worktree setup complete!")
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command("list")
def list_configs(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List discovered worktree configurations."""

    configure_logging(verbose)
    try:
        repo_root = discover_repo_root(Path.cwd())
        configs = _discover(repo_root)
        if not configs:
            console.print(f"No worktree configs found. Create a {DEFAULT_CONFIG_FILENAME} to define your setup.")
            return
        _print_config_list(configs)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def init(
    config: Path = typer.Option(
        Path(DEFAULT_CONFIG_FILENAME),
        "--config",
        "-c",
        help="Path to write the configuration file",
        dir_okay=False,
        writable=True,
    ),
    description: str = typer.Option("Default worktree setup", "--description", help="Description for the config"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing config if present"),
) -> None:
    """Create a starter worktree configuration file."""

    if config.exists() and not force:
        console.print(f"[red]Configuration '{escape(str(config))}' already exists. Use --force to overwrite.[/red]")
        raise typer.Exit(code=1)

    config.parent.mkdir(parents=True, exist_ok=True)
    config.write_text(render_starter_config(description))
    console.print(f"[green]Created '{escape(str(config))}'.[/green]")


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
