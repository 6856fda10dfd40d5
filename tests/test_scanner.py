from __future__ import annotations

import os
from pathlib import Path

import pytest

from worktree_setup.errors import CopyError
from worktree_setup.scanner import count_files, count_files_with_progress, enumerate_directory


def _make_tree(root: Path) -> None:
    (root / "a" / "b").mkdir(parents=True)
    (root / "top.txt").write_text("top\n")
    (root / "a" / "one.txt").write_text("one\n")
    (root / "a" / "b" / "two.txt").write_text("two\n")
    (root / ".hidden").write_text("secret\n")
    os.symlink("top.txt", root / "link")


def test_count_files_counts_files_and_symlinks(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    _make_tree(tree)

    assert count_files(tree) == 5


def test_count_files_for_single_file_missing_path_and_symlink(tmp_path: Path) -> None:
    single = tmp_path / "file.txt"
    single.write_text("x")
    os.symlink(single, tmp_path / "alias")

    assert count_files(single) == 1
    assert count_files(tmp_path / "missing") == 0
    assert count_files(tmp_path / "alias") == 0


def test_count_files_does_not_descend_into_symlinked_directory(tmp_path: Path) -> None:
    real = tmp_path / "real"
    real.mkdir()
    (real / "inside.txt").write_text("x")
    tree = tmp_path / "tree"
    tree.mkdir()
    os.symlink(real, tree / "linked")

    assert count_files(tree) == 1


def test_count_files_with_progress_reports_every_hundred_and_final(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    tree.mkdir()
    for index in range(250):
        (tree / f"file{index}.txt").write_text("x")

    seen: list[int] = []
    total = count_files_with_progress(tree, seen.append)

    assert total == 250
    assert seen == [100, 200, 250]


def test_count_files_with_progress_reports_single_file(tmp_path: Path) -> None:
    single = tmp_path / "file.txt"
    single.write_text("x")

    seen: list[int] = []
    assert count_files_with_progress(single, seen.append) == 1
    assert seen == [1]


def test_enumerate_directory_pairs_source_and_target(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    _make_tree(tree)
    target = tmp_path / "out"

    entries = enumerate_directory(tree, target)

    assert [entry.relative_path for entry in entries] == [".hidden", "a/b/two.txt", "a/one.txt", "link", "top.txt"]
    by_path = {entry.relative_path: entry for entry in entries}
    assert by_path["a/b/two.txt"].source == tree / "a" / "b" / "two.txt"
    assert by_path["a/b/two.txt"].target == target / "a" / "b" / "two.txt"
    assert by_path["link"].is_symlink
    assert not by_path["top.txt"].is_symlink


def test_enumerate_directory_skips_empty_subdirectories(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    (tree / "empty" / "deeper").mkdir(parents=True)

    assert enumerate_directory(tree, tmp_path / "out") == []


def test_enumerate_directory_raises_for_unreadable_source(tmp_path: Path) -> None:
    with pytest.raises(CopyError):
        enumerate_directory(tmp_path / "missing", tmp_path / "out")
