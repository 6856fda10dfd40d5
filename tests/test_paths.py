from __future__ import annotations

from pathlib import Path, PurePosixPath

from worktree_setup.paths import is_root_relative, resolve_path, strip_root


def test_config_relative_path_is_joined_with_config_dir() -> None:
    resolved = resolve_path(Path("/repo"), PurePosixPath("apps/x"), "local.txt")

    assert resolved.path == Path("/repo/apps/x/local.txt")
    assert resolved.label == "apps/x/local.txt"


def test_root_relative_path_ignores_config_dir() -> None:
    resolved = resolve_path(Path("/repo"), PurePosixPath("apps/x"), "/.env")

    assert resolved.path == Path("/repo/.env")
    assert resolved.label == ".env"


def test_config_at_repo_root_has_no_prefix() -> None:
    resolved = resolve_path(Path("/repo"), PurePosixPath("."), "data")

    assert resolved.path == Path("/repo/data")
    assert resolved.label == "data"


def test_nested_raw_path_keeps_its_components() -> None:
    resolved = resolve_path(Path("/target"), "apps/web", "config/local.json")

    assert resolved.path == Path("/target/apps/web/config/local.json")
    assert resolved.label == "apps/web/config/local.json"


def test_root_helpers() -> None:
    assert is_root_relative("/shared")
    assert not is_root_relative("shared/")
    assert strip_root("//shared/file") == "shared/file"
