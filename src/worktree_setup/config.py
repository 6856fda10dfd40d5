"""Configuration discovery and loading for worktree-setup."""

from __future__ import annotations

import io
import json
import logging
import os
import re
import subprocess
import tomllib
from pathlib import Path, PurePosixPath
from typing import Any, Mapping

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "worktree.config.toml"

CONFIG_NAME_PATTERN = re.compile(r"^worktree(\.[^/\\]+)?\.config\.(toml|ts)$")

IGNORED_DIRECTORIES = frozenset({"node_modules", ".git", "target", "dist", "build", ".next"})

_TS_IMPORT_SCRIPT = 'const m = await import("file://{path}"); console.log(JSON.stringify(m.default ?? m));'


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be found, parsed, or validated."""


class TemplateMapping(BaseModel):
    """Copy ``source`` to ``target`` when the target does not exist yet."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    target: str


class Config(BaseModel):
    """Contents of a single worktree configuration file."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    description: str = ""
    symlinks: tuple[str, ...] = Field(default_factory=tuple)
    copy_paths: tuple[str, ...] = Field(default_factory=tuple, alias="copy")
    overwrite: tuple[str, ...] = Field(default_factory=tuple)
    copy_glob: tuple[str, ...] = Field(default_factory=tuple)
    copy_unstaged: bool = False
    templates: tuple[TemplateMapping, ...] = Field(default_factory=tuple)
    post_setup: tuple[str, ...] = Field(default_factory=tuple)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, path: Path) -> "Config":
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc


class LoadedConfig(BaseModel):
    """A parsed configuration together with where it was found."""

    model_config = ConfigDict(frozen=True)

    config: Config
    config_path: Path
    config_dir: Path
    relative_path: str

    @property
    def relative_dir(self) -> PurePosixPath:
        """Directory of the configuration file relative to the repository root."""

        return PurePosixPath(self.relative_path).parent

    @property
    def display_name(self) -> str:
        name = self.config_dir.name
        if name and name not in (".", ".."):
            return name
        return self.relative_path


def load_toml_config(path: Path) -> Config:
    """Parse a TOML configuration file."""

    logger.debug("Loading TOML config from %s", path)
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse TOML config {path}: {exc}") from exc

    config = Config.from_raw(data, path=path)
    logger.debug("Loaded config: %r", config.description)
    return config


def _evaluate_script(command: list[str], path: Path) -> Config:
    try:
        completed = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise ConfigError(f"TypeScript evaluation failed for {path}: failed to run {command[0]}: {exc}") from exc

    if completed.returncode != 0:
        raise ConfigError(f"TypeScript evaluation failed for {path}: {completed.stderr.strip()}")

    output = completed.stdout.strip()
    logger.debug("%s output: %s", command[0], output)
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse JSON from TypeScript config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file {path}: default export must be an object")
    return Config.from_raw(data, path=path)


def load_ts_config(path: Path) -> Config:
    """Evaluate a TypeScript configuration with bun, falling back to deno."""

    logger.debug("Loading TypeScript config from %s", path)
    script = _TS_IMPORT_SCRIPT.format(path=path.resolve())
    runtimes = (
        ["bun", "-e", script],
        ["deno", "eval", "--allow-read", script],
    )

    failures: list[str] = []
    for command in runtimes:
        try:
            return _evaluate_script(command, path)
        except ConfigError as exc:
            logger.debug("%s failed: %s", command[0], exc)
            failures.append(str(exc))

    raise ConfigError("No JavaScript runtime could evaluate the config. Please install bun or deno.\n" + "\n".join(failures))


def load_config(path: Path, repo_root: Path) -> LoadedConfig:
    """Load a configuration file, choosing the parser from its extension."""

    path = Path(path)
    extension = path.suffix.lstrip(".")
    if extension == "toml":
        config = load_toml_config(path)
    elif extension == "ts":
        config = load_ts_config(path)
    else:
        raise ConfigError(f"Unsupported config format: {extension or path.name}")

    try:
        relative_path = path.relative_to(repo_root).as_posix()
    except ValueError:
        relative_path = path.as_posix()

    return LoadedConfig(
        config=config,
        config_path=path,
        config_dir=path.parent,
        relative_path=relative_path,
    )


def discover_configs(repo_root: Path) -> list[Path]:
    """Return every configuration file below ``repo_root``, sorted by path.

    Matches ``worktree.config.{toml,ts}`` and ``worktree.<variant>.config.{toml,ts}``
    and never descends into dependency, build, or VCS directories.
    """

    logger.debug("Discovering configs in %s", repo_root)
    if not repo_root.is_dir():
        raise ConfigError(f"Repository root '{repo_root}' is not a directory")

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(repo_root):
        dirnames[:] = [name for name in dirnames if name not in IGNORED_DIRECTORIES]
        for name in filenames:
            if CONFIG_NAME_PATTERN.match(name):
                found.append(Path(dirpath) / name)

    found.sort()
    logger.debug("Found %d config files", len(found))
    return found


def render_starter_config(description: str = "Default worktree setup") -> str:
    """Return the text of a starter ``worktree.config.toml``."""

    data = {
        "description": description,
        "symlinks": [],
        "copy": [".env.local"],
        "overwrite": [],
        "copyGlob": [],
        "copyUnstaged": False,
        "templates": [{"source": ".env.example", "target": ".env"}],
        "postSetup": [],
    }

    buffer = io.StringIO()
    buffer.write("# worktree-setup configuration\n")
    buffer.write("# Paths starting with '/' are relative to the repository root,\n")
    buffer.write("# all others are relative to this file's directory.\n\n")
    buffer.write(tomli_w.dumps(data))
    return buffer.getvalue()
