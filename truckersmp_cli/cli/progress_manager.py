"""
Renders sync progress with Rich: one overall bar per batch and one bar per
active download.
"""

import logging

from rich.console import Console, Group
from rich.live import Live
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

from truckersmp_cli.models.manifest import ManifestEntry

log = logging.getLogger("truckersmp_cli")


class RichProgressSink:
    """A ProgressSink that drives Rich progress bars."""

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
        )
        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            TextColumn("{task.completed}/{task.total}"),
            console=console,
        )
        self._live = Live(
            Group(self.overall_progress, self.progress),
            console=console,
            refresh_per_second=10,
            transient=True,
        )
        self._overall_task_id: TaskID | None = None
        self._entry_tasks: dict[str, TaskID] = {}

    def __enter__(self) -> "RichProgressSink":
        self._live.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._live.stop()

    def batch_total(self, total: int, description: str) -> None:
        if self._overall_task_id is not None:
            self.overall_progress.remove_task(self._overall_task_id)
        self._overall_task_id = self.overall_progress.add_task(
            description, total=total
        )

    def entry_started(self, entry: ManifestEntry, total_bytes: int | None) -> None:
        name = entry.relative_path.rsplit("/", 1)[-1]
        self._entry_tasks[entry.relative_path] = self.progress.add_task(
            name, total=total_bytes
        )

    def entry_bytes(self, entry: ManifestEntry, n: int) -> None:
        if (task_id := self._entry_tasks.get(entry.relative_path)) is not None:
            self.progress.advance(task_id, n)

    def entry_finished(self, entry: ManifestEntry, success: bool) -> None:
        if (task_id := self._entry_tasks.pop(entry.relative_path, None)) is not None:
            self.progress.remove_task(task_id)
        if self._overall_task_id is not None:
            self.overall_progress.advance(self._overall_task_id)
        if not success:
            log.debug(f"'{entry.relative_path}' did not complete successfully.")
