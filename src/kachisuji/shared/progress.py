"""Rich progress display and confirmation prompts for CLI commands."""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.prompt import Confirm

console = Console()


class StepProgress:
    """Spinner per named step (parse, embed, explore, ...) for one CLI command."""

    def __init__(self) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_ids: dict[str, int] = {}

    def __enter__(self) -> "StepProgress":
        self._progress.__enter__()
        return self

    def __exit__(self, *args: object) -> None:
        self._progress.__exit__(*args)

    def start(self, step: str) -> None:
        tid = self._progress.add_task(f"[cyan]{step}[/]", total=None)
        self._task_ids[step] = tid

    def update(self, step: str, status: str) -> None:
        if step in self._task_ids:
            self._progress.update(self._task_ids[step], description=f"[cyan]{step}[/] - {status}")

    def finish(self, step: str, detail: str = "") -> None:
        if step in self._task_ids:
            suffix = f" ({detail})" if detail else ""
            self._progress.update(
                self._task_ids[step],
                description=f"[green]✓ {step}{suffix}[/]",
                completed=True,
            )

    def fail(self, step: str, error: str) -> None:
        if step in self._task_ids:
            self._progress.update(
                self._task_ids[step],
                description=f"[red]✗ {step}: {error}[/]",
                completed=True,
            )

    def log_event(self, step: str, message: str, style: str = "dim") -> None:
        """Print a persistent line above the spinners."""
        self._progress.console.print(f"  [{style}]{step}:[/] {message}")

    def print_phase(self, label: str) -> None:
        self._progress.console.print(Panel(f"[bold]{label}[/bold]", style="blue"))


def confirm(question: str, *, default: bool = False) -> bool:
    """Yes/no prompt; non-interactive sessions get ``default``.

    Log output is silenced while the prompt is shown.
    """
    if not sys.stdin.isatty():
        console.print(f"[yellow]{question} (non-interactive, using default: {default})[/]")
        return default

    root_logger = logging.getLogger()
    prev_level = root_logger.level
    root_logger.setLevel(logging.CRITICAL)
    try:
        return Confirm.ask(f"[yellow]{question}[/]", default=default)
    except EOFError:
        return default
    finally:
        root_logger.setLevel(prev_level)
