"""Rich-based progress and result display."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

LABEL_WIDTH = 30


def _ignore(*_args: object) -> None:
    return None


class ProgressDisplay:
    """Progress bars for directory copies, a scanning indicator, and per-operation result lines."""

    def __init__(self, console: Console, *, enabled: bool = True) -> None:
        self.console = console
        self.enabled = enabled

    @contextmanager
    def file_bar(self, label: str, total: int) -> Iterator[Callable[[int, int], None]]:
        """Show a bar for ``total`` files while the block runs; yields an ``(completed, total)`` callback."""

        if not self.enabled:
            yield _ignore
            return

        with Progress(
            TextColumn("  {task.description}"),
            BarColumn(bar_width=25),
            MofNCompleteColumn(),
            TextColumn("files"),
            console=self.console,
            transient=True,
        ) as progress:
            task = progress.add_task(escape(label.ljust(LABEL_WIDTH)), total=total)

            def update(completed: int, _total: int) -> None:
                progress.update(task, completed=completed)

            yield update

    @contextmanager
    def scanning(self) -> Iterator[Callable[[str, int], None]]:
        """Show a spinner while files are counted; yields a ``(label, count)`` callback."""

        if not self.enabled:
            yield _ignore
            return

        with self.console.status("Scanning...") as status:

            def update(label: str, count: int) -> None:
                status.update(f"Scanning {escape(label)} ({count} files)")

            yield update

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        with self.console.status(message):
            yield

    def print_result(self, label: str, result: str, *, success: bool = True) -> None:
        marker = "[green]✓[/green]" if success else "[dim]•[/dim]"
        self.console.print(f"{marker} {escape(label.ljust(LABEL_WIDTH))} [dim]{escape(result)}[/dim]")

    def print_result_with_count(self, label: str, result: str, file_count: int) -> None:
        self.console.print(
            f"[green]✓[/green] {escape(label.ljust(LABEL_WIDTH))} [dim]{escape(result)}[/dim] ({file_count} files)"
        )
