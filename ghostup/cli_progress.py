"""Console rendering and progress helpers for ghostup CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
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
)
from rich.table import Table

from .models import ProgressReport, UploadOutcome, UploadState
from .orchestrator.models import BatchUploadResult
from .services.progress import CALCULATING_LABEL, human_size
from .utils.events import StateChange


LARGE_FILE_THRESHOLD = 50 * 1024 * 1024
SINGLE_FILE_PERCENT_STEP = 5

console = Console()


def _echo(message: str) -> None:
    console.print(message)


def _speed_label(report: ProgressReport) -> str:
    if report.bytes_per_second <= 0:
        return "-"
    return f"{human_size(int(report.bytes_per_second))}/s"


def _build_transfer_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
        BarColumn(bar_width=42),
        TextColumn("{task.fields[percent]:>5.1f}%"),
        DownloadColumn(),
        TextColumn("[green]{task.fields[speed]}"),
        TextColumn("[dim]ETA {task.fields[eta]}"),
        expand=False,
        console=console,
    )


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
        title="[bold green]ghostup[/bold green]",
        subtitle="[dim]GhostCDN uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_outcome(outcome: UploadOutcome) -> None:
    """Print the URL summary of a finished upload or its failure reason."""
    if not outcome.success or outcome.result is None:
        stage = f" while {outcome.failed_state.value}" if outcome.failed_state else ""
        _echo(f"[red]Failed:[/red] {outcome.filename}{stage} - {outcome.reason}")
        return

    result = outcome.result
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("URL", f"[link={result.url}]{result.url}[/link]")
    table.add_row("Size", human_size(result.final_size_bytes))
    table.add_row("Type", result.mime_type)
    table.add_row("Key", result.remote_id)
    if result.thumbnail_url:
        table.add_row("Thumbnail", result.thumbnail_url)

    console.print(
        Panel(
            table,
            title=f"[bold green]Uploaded[/bold green] {outcome.filename}",
            border_style="green",
        )
    )


class SingleFileUploadProgress:
    """Single-file upload progress renderer fed with ProgressReport objects."""

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self.filename = self.file_path.name
        try:
            self.file_size = self.file_path.stat().st_size
        except OSError:
            self.file_size = 0
        self._started = False
        self._last_printed_percent = -1
        self._last_print_time = 0.0

        self._progress = _build_transfer_progress()
        self._live: Optional[Live] = None
        self._task_id: Optional[TaskID] = None

    def start(self) -> None:
        if self._started:
            return

        if self.file_size > LARGE_FILE_THRESHOLD:
            self._live = Live(
                self._progress,
                console=console,
                refresh_per_second=5,
                vertical_overflow="visible",
            )
            self._live.start()
            self._task_id = self._progress.add_task(
                "upload",
                filename=self.filename[:60],
                total=self.file_size,
                percent=0.0,
                speed="-",
                eta=CALCULATING_LABEL,
            )
        else:
            _echo(f"[cyan]Uploading:[/cyan] {self.filename}")

        self._started = True

    def update(self, report: ProgressReport) -> None:
        if not self._started:
            self.start()

        sample = report.sample
        if self._task_id is not None:
            self._progress.update(
                self._task_id,
                completed=sample.bytes_sent,
                total=max(sample.total_bytes, 1),
                percent=report.percent,
                speed=_speed_label(report),
                eta=report.eta_label,
            )
            return

        percent = int(report.percent)
        now = time.monotonic()
        should_print = (
            percent >= 100
            or percent - self._last_printed_percent >= SINGLE_FILE_PERCENT_STEP
            or now - self._last_print_time >= 2.0
        )
        if should_print and percent != self._last_printed_percent:
            _echo(
                f"  {percent:3d}% ({human_size(sample.bytes_sent)}/{human_size(sample.total_bytes)})"
                f" {_speed_label(report)} ETA {report.eta_label}"
            )
            self._last_printed_percent = percent
            self._last_print_time = now

    def complete(self, outcome: UploadOutcome) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
        render_outcome(outcome)

    def get_callback(self):
        def callback(report: ProgressReport) -> None:
            self.update(report)

        return callback


class BatchUploadProgressDisplay:
    """Event-based console display for multi-file uploads."""

    def __init__(self):
        self._active_tasks: Dict[Path, TaskID] = {}
        self._progress = _build_transfer_progress()
        self._live: Optional[Live] = None

    def _emit_timeline(self, status: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "SEND": "cyan",
        }
        color = palette.get(status, "white")
        detail_label = f" {detail}" if detail else ""
        _echo(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{detail_label}")

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

    def _drop_task(self, path: Path) -> None:
        task_id = self._active_tasks.pop(path, None)
        if task_id is not None:
            self._progress.remove_task(task_id)

    def on_state(self, change: StateChange) -> None:
        if change.current == UploadState.TRANSFERRING:
            self._start_live()
            self._emit_timeline("SEND", change.filename)
            self._active_tasks[change.path] = self._progress.add_task(
                "upload",
                filename=change.filename[:60],
                total=None,
                percent=0.0,
                speed="-",
                eta=CALCULATING_LABEL,
            )
        elif change.current == UploadState.DONE:
            self._drop_task(change.path)
            self._emit_timeline("DONE", change.filename)
        elif change.current == UploadState.FAILED:
            self._drop_task(change.path)
            self._emit_timeline("FAIL", change.filename, f"while {change.previous.value}")

    def on_progress(self, path: Path, report: ProgressReport) -> None:
        task_id = self._active_tasks.get(Path(path))
        if task_id is None:
            return
        sample = report.sample
        self._progress.update(
            task_id,
            completed=sample.bytes_sent,
            total=max(sample.total_bytes, 1),
            percent=report.percent,
            speed=_speed_label(report),
            eta=report.eta_label,
        )

    def on_finish(self, batch: BatchUploadResult) -> None:
        self._stop_live()
        for outcome in batch.outcomes:
            render_outcome(outcome)
        _echo(
            f"[bold]Finished[/bold] uploaded={batch.uploaded_files} "
            f"total={batch.total_files} failed={batch.failed_files}"
        )
