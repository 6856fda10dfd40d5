"""Exceptions raised by the planning and transfer engine."""

from __future__ import annotations

from pathlib import Path


class CopyError(RuntimeError):
    """Raised when a filesystem transfer fails part-way."""

    def __init__(self, message: str, *, path: Path, target: Path | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.target = target


class PlanError(RuntimeError):
    """Raised when a configuration cannot be turned into operations."""
