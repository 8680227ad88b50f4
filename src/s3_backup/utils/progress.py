"""Upload progress reporting."""

from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)


class ProgressListener(Protocol):
    """Receives the cumulative number of bytes sent for one upload."""

    def update(self, bytes_so_far: int, total: int) -> None:
        ...


class _RichTaskListener:
    def __init__(self, progress: Progress, task_id):
        self.progress = progress
        self.task_id = task_id

    def update(self, bytes_so_far: int, total: int) -> None:
        self.progress.update(self.task_id, completed=bytes_so_far, total=total)


class ConsoleProgress:
    """Draws one rich progress bar per uploaded file."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    @contextmanager
    def track(self, description: str, total: int) -> Iterator[ProgressListener]:
        """Show a progress bar for the duration of one upload.

        Args:
            description: Label shown next to the bar
            total: Total number of bytes to transfer

        Yields:
            Listener to feed with cumulative byte counts
        """
        with Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self.console,
        ) as progress:
            task_id = progress.add_task(description, total=total)
            yield _RichTaskListener(progress, task_id)
