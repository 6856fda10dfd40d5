from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from worktree_setup.config import DEFAULT_CONFIG_FILENAME, load_config
from worktree_setup.manager import (
    SetupManager,
    WorktreeSetupError,
    ensure_not_main,
    load_configs,
    resolve_target,
    select_configs,
)
from worktree_setup.models import ApplyOptions, OperationResult, OperationType


def _write_config(directory: Path, body: str, name: str = DEFAULT_CONFIG_FILENAME) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    config_path = directory / name
    config_path.write_text(body)
    return config_path


def test_load_configs_collects_failures(source_root: Path) -> None:
    _write_config(source_root, 'description = "root"\n')
    broken = _write_config(source_root / "apps" / "broken", "copy = [")

    loaded, failures = load_configs(source_root)

    assert [config.relative_path for config in loaded] == [DEFAULT_CONFIG_FILENAME]
    assert [path for path, _exc in failures] == [broken]


def test_select_configs_by_substring(source_root: Path) -> None:
    _write_config(source_root / "apps" / "web", "")
    _write_config(source_root / "apps" / "api", "")
    _write_config(source_root, "", name="worktree.local.config.toml")
    loaded, _ = load_configs(source_root)

    selected = select_configs(loaded, ["web", "local"])

    assert [config.relative_path for config in selected] == [
        "apps/web/worktree.config.toml",
        "worktree.local.config.toml",
    ]
    assert select_configs(loaded, ["nothing"]) == []


def test_resolve_target(tmp_path: Path) -> None:
    assert resolve_target(Path("../wt"), tmp_path) == tmp_path / "../wt"
    assert resolve_target(tmp_path / "abs", Path("/elsewhere")) == tmp_path / "abs"


def test_ensure_not_main(tmp_path: Path) -> None:
    main = tmp_path / "main"
    main.mkdir()

    ensure_not_main(tmp_path / "other", main)
    with pytest.raises(WorktreeSetupError, match="main worktree"):
        ensure_not_main(main / "sub" / "..", main)


def test_plan_and_execute_across_configs(source_root: Path, target_root: Path) -> None:
    (source_root / ".env").write_text("ROOT=1\n")
    (source_root / "apps" / "web" / "public").mkdir(parents=True)
    (source_root / "apps" / "web" / "public" / "logo.svg").write_text("<svg/>")
    (source_root / "apps" / "web" / "public" / "icon.svg").write_text("<svg/>")
    root = load_config(_write_config(source_root, 'copy = [".env"]\n'), source_root)
    web = load_config(_write_config(source_root / "apps" / "web", 'copy = ["public", "/.env"]\n'), source_root)
    manager = SetupManager([root, web], source_root, target_root, max_workers=2)

    operations = manager.plan()

    assert [op.display_path for op in operations] == [".env", "apps/web/public", ".env"]
    results = [manager.execute(op) for op in operations]
    assert results == [OperationResult.CREATED, OperationResult.CREATED, OperationResult.EXISTS]
    assert (target_root / "apps" / "web" / "public" / "logo.svg").read_text() == "<svg/>"


def test_plan_unstaged_only_when_requested(source_root: Path, target_root: Path) -> None:
    (source_root / "wip.py").write_text("pass\n")
    plain = load_config(_write_config(source_root, ""), source_root)
    calls: list[Path] = []

    def changed(root: Path) -> list[str]:
        calls.append(root)
        return ["wip.py"]

    manager = SetupManager([plain], source_root, target_root, changed_files=changed)
    assert not manager.wants_unstaged()
    assert manager.plan_unstaged() == []
    assert calls == []

    forced = SetupManager(
        [plain], source_root, target_root, ApplyOptions(copy_unstaged=True), changed_files=changed
    )
    (op,) = forced.plan_unstaged()
    assert op.operation_type is OperationType.UNSTAGED
    assert forced.execute(op) is OperationResult.CREATED
    assert calls == [source_root]


def test_post_setup_commands_are_deduplicated(source_root: Path, target_root: Path) -> None:
    first = load_config(_write_config(source_root, 'postSetup = ["npm install", "make"]\n'), source_root)
    second = load_config(
        _write_config(source_root / "apps" / "web", 'postSetup = ["npm install", "npm run build"]\n'), source_root
    )
    manager = SetupManager([first, second], source_root, target_root)

    assert manager.post_setup_commands() == ["npm install", "make", "npm run build"]


def test_run_post_setup_continues_after_failure(source_root: Path, target_root: Path) -> None:
    loaded = load_config(_write_config(source_root, 'postSetup = ["false", "true"]\n'), source_root)
    manager = SetupManager([loaded], source_root, target_root)
    invocations: list[tuple[list[str], Path]] = []
    announced: list[str] = []

    def runner(args: list[str], *, cwd: Path, check: bool) -> subprocess.CompletedProcess[bytes]:
        invocations.append((args, cwd))
        return subprocess.CompletedProcess(args, 1 if args[-1] == "false" else 0)

    results = manager.run_post_setup(runner=runner, on_command=announced.append)

    assert [(result.command, result.succeeded) for result in results] == [("false", False), ("true", True)]
    assert invocations == [(["sh", "-c", "false"], target_root), (["sh", "-c", "true"], target_root)]
    assert announced == ["false", "true"]


def test_run_post_setup_runs_in_target(source_root: Path, target_root: Path) -> None:
    if shutil.which("sh") is None:
        pytest.skip("sh is not available")
    loaded = load_config(_write_config(source_root, "postSetup = [\"echo ready > marker.txt\"]\n"), source_root)

    (result,) = SetupManager([loaded], source_root, target_root).run_post_setup()

    assert result.succeeded
    assert (target_root / "marker.txt").read_text().strip() == "ready"


def test_run_post_setup_reports_spawn_failure(source_root: Path, target_root: Path) -> None:
    loaded = load_config(_write_config(source_root, 'postSetup = ["anything"]\n'), source_root)

    def runner(args: list[str], **_kwargs: object) -> subprocess.CompletedProcess[bytes]:
        raise FileNotFoundError("sh")

    with pytest.raises(WorktreeSetupError, match="anything"):
        SetupManager([loaded], source_root, target_root).run_post_setup(runner=runner)
