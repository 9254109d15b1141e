"""Console rendering and progress helpers for sendvideos CLI."""
from __future__ import annotations

import time
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

from .models import HealthSample, PollResult, StatusIcon, UploadResult

console = Console()

ICON_STYLES = {
    StatusIcon.GREEN: "green",
    StatusIcon.YELLOW: "yellow",
    StatusIcon.RED: "red",
}


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


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
        title="[bold green]sendvideos[/bold green]",
        subtitle="[dim]chunked upload client[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_notification(message: str) -> None:
    stamp = time.strftime("%H:%M:%S")
    console.print(f"[dim]{stamp}[/dim] {message}")


def render_health(icon: StatusIcon, text: str) -> None:
    style = ICON_STYLES.get(icon, "white")
    console.print(f"[{style}]●[/{style}] {text}")


def render_health_sample(sample: HealthSample) -> None:
    render_health(sample.icon, f"{sample.text} ({sample.quality.value})")


def render_upload_result(result: UploadResult) -> None:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("File", result.filename)
    table.add_row("Status", result.status.value)
    table.add_row("Chunks", f"{result.succeeded_chunks}/{result.total_chunks}")
    table.add_row("File ID", result.file_id or "-")
    table.add_row("Task ID", result.task_id or "-")
    if result.error:
        table.add_row("Error", result.error)

    style = "green" if result.success else "red"
    console.print(Panel(table, title=f"[bold {style}]Upload[/bold {style}]", border_style=style))


def render_poll_result(result: PollResult) -> None:
    style = "green" if result.success else "red"
    processing = result.processing
    if processing is not None:
        body = processing.summary()
    else:
        body = result.error or result.state.value
    console.print(
        Panel(
            f"{body}\n\n[dim]task={result.task_id} attempts={result.attempts} state={result.state.value}[/dim]",
            title=f"[bold {style}]Processing result[/bold {style}]",
            border_style=style,
        )
    )


class ChunkUploadProgress:
    """Chunk-level progress bar for a single upload."""

    def __init__(self, filename: str, file_size: int = 0):
        self.filename = filename
        self.file_size = file_size
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            MofNCompleteColumn(),
            TextColumn("chunks"),
            TimeElapsedColumn(),
            expand=False,
            console=console,
        )
        self._task_id: Optional[TaskID] = None
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        size_label = f" ({_human_size(self.file_size)})" if self.file_size else ""
        console.print(f"[cyan]Uploading:[/cyan] {self.filename}{size_label}")
        self._progress.start()
        self._started = True

    def update(self, done: int, total: int) -> None:
        if not self._started:
            self.start()
        if self._task_id is None:
            self._task_id = self._progress.add_task("upload", filename=self.filename[:60], total=total)
        self._progress.update(self._task_id, completed=done, total=total)

    def complete(self, success: bool = True, error: Optional[str] = None) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

        if success:
            console.print(f"[green]Uploaded:[/green] {self.filename}")
            return

        suffix = f" - {error}" if error else ""
        console.print(f"[red]Failed:[/red] {self.filename}{suffix}")

    def get_callback(self):
        def callback(done: int, total: int) -> None:
            self.update(done, total)

        return callback
