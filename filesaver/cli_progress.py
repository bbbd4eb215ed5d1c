"""Console rendering and progress helpers for filesaver CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import Entry, SaveOutcome
from .orchestrator.models import BatchSaveResult
from .utils.events import ENTRY_DONE, ENTRY_SKIPPED, ENTRY_START, TIMEOUT, EventEmitter

console = Console(stderr=True)


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]save-files[/bold green]",
        subtitle="[dim]filesaver CLI[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_batch_summary(result: BatchSaveResult) -> None:
    """Render the counts of a finished batch."""
    table = Table(title="Batch summary", show_header=True, header_style="bold")
    table.add_column("Outcome")
    table.add_column("Entries", justify="right")
    table.add_row("[green]created[/green]", str(result.created_files))
    table.add_row("[cyan]reused[/cyan]", str(result.reused_files))
    table.add_row("[dim]pass-through[/dim]", str(result.passed_through))
    table.add_row("[red]failed[/red]", str(result.failed_files))
    if result.timed_out:
        table.add_row("[yellow]remaining (timeout)[/yellow]", str(result.remaining))
    table.add_row("[bold]total[/bold]", str(result.total_entries))
    console.print(table)


def _short_label(entry: Entry, width: int = 60) -> str:
    label = entry.filename or entry.fileurl or "<stream>"
    return label if len(label) <= width else f"...{label[-(width - 3):]}"


class BatchProgressDisplay:
    """Progress bar driven by the coordinator's events."""

    def __init__(self, total: int):
        self.total = total
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[current]}", justify="left"),
            BarColumn(bar_width=36),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        )
        self._task_id: Optional[TaskID] = None

    def attach(self, events: EventEmitter) -> None:
        events.on(ENTRY_START, self.on_entry_start)
        events.on(ENTRY_DONE, self.on_entry_done)
        events.on(ENTRY_SKIPPED, self.on_entry_skipped)
        events.on(TIMEOUT, self.on_timeout)

    def __enter__(self):
        self._progress.start()
        self._task_id = self._progress.add_task("save", total=self.total, current="starting")
        return self

    def __exit__(self, *args):
        self._progress.stop()

    def on_entry_start(self, index: int, entry: Entry) -> None:
        if self._task_id is not None:
            self._progress.update(self._task_id, current=_short_label(entry))

    def on_entry_done(self, index: int, outcome: SaveOutcome) -> None:
        label = _short_label(outcome.entry)
        if outcome.failed:
            console.print(f"[red]✗[/red] {label}: {outcome.error}")
        elif outcome.created:
            console.print(f"[green]✓[/green] {label}")
        else:
            console.print(f"[cyan]=[/cyan] {label} (already stored)")
        self._advance()

    def on_entry_skipped(self, index: int, entry: Entry) -> None:
        self._advance()

    def on_timeout(self, remaining: int, total: int) -> None:
        console.print(f"[yellow]Deadline reached: {remaining} / {total} entries left for the next run[/yellow]")

    def _advance(self) -> None:
        if self._task_id is not None:
            self._progress.advance(self._task_id)
