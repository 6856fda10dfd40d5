"""Resolution of configuration-declared paths."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePath, PurePosixPath

_SEPARATORS = tuple({"/", os.sep})


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    """An absolute path paired with the label shown to the user."""

    path: Path
    label: str


def is_root_relative(raw_path: str) -> bool:
    """Return ``True`` when ``raw_path`` is anchored at the repository root."""

    return raw_path.startswith(_SEPARATORS)


def strip_root(raw_path: str) -> str:
    """Return ``raw_path`` without its leading separators."""

    return raw_path.lstrip("".join(_SEPARATORS))


def resolve_path(base_dir: Path, config_relative_dir: PurePath | str, raw_path: str) -> ResolvedPath:
    """Resolve ``raw_path`` as declared in a configuration against ``base_dir``.

    A leading separator makes the path relative to the repository root; any
    other path is relative to the directory holding the configuration file
    (``config_relative_dir``, itself relative to the repository root).
    """

    if is_root_relative(raw_path):
        label = strip_root(raw_path)
    else:
        label = (PurePosixPath(PurePath(config_relative_dir).as_posix()) / raw_path).as_posix()

    return ResolvedPath(path=Path(base_dir) / label, label=label)
