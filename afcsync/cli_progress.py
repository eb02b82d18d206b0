"""CLI progress display for transfer sessions.

This module provides a Rich-based progress sink that receives the
session lifecycle notifications and the per-file copy callback.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .utils import format_size


class RichProgressSink:
    """Progress sink showing a spinner with a running file count.

    Usage:
        >>> sink = RichProgressSink()
        >>> session = TransferSession(..., on_file_copied=sink.on_file_copied)
        >>> with sink:
        ...     session.run(channel, progress=sink)
    """

    def __init__(self, console: Optional[Console] = None, disable: bool = False):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TextColumn("{task.fields[files]} file(s), {task.fields[size]}"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
            disable=disable,
        )
        self._task: Optional[TaskID] = None
        self.task_id: Optional[str] = None
        self.files = 0
        self.bytes = 0
        self.success: Optional[bool] = None

    def __enter__(self) -> "RichProgressSink":
        self._progress.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self._progress.stop()

    def on_task_started(self, task_id: str) -> None:
        self.task_id = task_id
        self._task = self._progress.add_task(
            "Copying...", total=None, files=0, size=format_size(0)
        )

    def on_file_copied(self, source: str, destination: str, size: int) -> None:
        self.files += 1
        self.bytes += size
        if self._task is not None:
            self._progress.update(
                self._task,
                description=f"Copying {source}",
                files=self.files,
                size=format_size(self.bytes),
            )

    def on_transfer_finished(self, success: bool) -> None:
        self.success = success
        if self._task is not None:
            description = "Done" if success else "Finished with errors"
            self._progress.update(self._task, description=description)
