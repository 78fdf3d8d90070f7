"""Console rendering and progress helpers for the nzb-mega CLI."""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import time

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import Slot, SlotResult, SlotState, UploadTask

console = Console()


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
        title="[bold green]nzb-mega[/bold green]",
        subtitle="[dim]SABnzbd to MEGA[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_results(results: List[SlotResult]) -> None:
    """Render one row per slot: link or failure."""
    if not results:
        console.print("[yellow]The job produced no content, nothing uploaded.[/yellow]")
        return

    table = Table(title="Results", show_lines=False)
    table.add_column("Slot", style="bold")
    table.add_column("Status")
    table.add_column("Link / Error", overflow="fold")

    for result in results:
        if result.success:
            table.add_row(result.slot_name, "[green]shared[/green]", result.url)
            continue
        stage = result.failed_stage.value if result.failed_stage else "unknown"
        table.add_row(result.slot_name, f"[red]failed after {stage}[/red]", result.error or "")

    console.print(table)


class PipelineProgressDisplay:
    """Event-based console display for a pipeline run."""

    def __init__(self):
        self._active_tasks: Dict[str, TaskID] = {}
        self._live: Optional[Live] = None
        self._status = console.status("[cyan]Waiting for SABnzbd...[/cyan]")
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def _emit_timeline(self, status: str, kind: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "INFO": "blue",
        }
        color = palette.get(status, "white")
        suffix = f" {detail}" if detail else ""
        console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {kind}: {name}{suffix}"
        )

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def on_job_submitted(self, job_reference: str, job_ids: List[str]) -> None:
        self._emit_timeline("INFO", "job", job_reference, f"queued as {', '.join(job_ids)}")
        self._status.start()

    def on_job_finished(self, job_reference: str, slots: List[Slot]) -> None:
        self._status.stop()
        self._emit_timeline("DONE", "download", job_reference, f"{len(slots)} slot(s)")

    def on_slot_state(self, slot_name: str, state: SlotState) -> None:
        if state == SlotState.FOLDER_CREATED:
            self._emit_timeline("INFO", "folder", slot_name)

    def on_file_start(self, task: UploadTask) -> None:
        self._start_live()
        key = str(task.source)
        self._active_tasks[key] = self._progress.add_task(
            "upload",
            label=task.file_name[:60],
            total=max(task.total_bytes, 1),
        )

    def on_file_progress(self, task: UploadTask) -> None:
        task_id = self._active_tasks.get(str(task.source))
        if task_id is None:
            return
        self._progress.update(
            task_id,
            completed=task.bytes_transferred,
            total=max(task.total_bytes, 1),
        )

    def _remove(self, task: UploadTask) -> None:
        task_id = self._active_tasks.pop(str(task.source), None)
        if task_id is not None:
            self._progress.remove_task(task_id)

    def on_file_complete(self, task: UploadTask) -> None:
        self._remove(task)
        self._emit_timeline("DONE", "file", task.file_name, _human_size(task.total_bytes))

    def on_file_fail(self, task: UploadTask) -> None:
        self._remove(task)
        self._emit_timeline("FAIL", "file", task.file_name, f"cause={task.error}")

    def on_slot_finish(self, result: SlotResult) -> None:
        if result.success:
            self._emit_timeline("DONE", "slot", result.slot_name, result.url)
        else:
            self._emit_timeline("FAIL", "slot", result.slot_name, result.error)

    def close(self) -> None:
        self._status.stop()
        self._stop_live()
