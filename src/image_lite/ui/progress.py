"""Rich-based progress display for batch image optimization.

The orchestrator reports a JobProgress after every file; the batch display
turns those events into an overall bar with running outcome counts.

Example:
    >>> from image_lite.ui.progress import ProgressDisplayManager
    >>>
    >>> manager = ProgressDisplayManager(quiet=False)
    >>> progress = manager.create_batch_progress()
    >>> progress.start()
    >>> report = await orchestrator.run(on_progress=progress.update)
    >>> progress.finish()

Example display:
    Optimizing products/shoe.jpg
    [################............] 42/100 | 38 ok  3 skipped  1 failed | 0:00:12
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from image_lite.core.types import FileStatus, JobProgress

if TYPE_CHECKING:
    from collections.abc import Generator


@dataclass
class BatchProgressDisplay:
    """Progress display for a batch of images.

    The total is taken from the first progress event, since the work list
    is only known once the orchestrator has scanned the input tree.

    Attributes:
        console: Rich console for output.
    """

    console: Console = field(default_factory=Console)
    _progress: Progress | None = field(default=None, init=False, repr=False)
    _task_id: TaskID | None = field(default=None, init=False, repr=False)
    _counts: dict[FileStatus, int] = field(
        default_factory=lambda: {status: 0 for status in FileStatus}, init=False, repr=False
    )

    def _summary(self) -> str:
        return (
            f"[green]{self._counts[FileStatus.SUCCESS]} ok[/green]  "
            f"[yellow]{self._counts[FileStatus.SKIPPED]} skipped[/yellow]  "
            f"[red]{self._counts[FileStatus.FAILED]} failed[/red]"
        )

    def start(self) -> None:
        """Start the batch progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}[/bold blue]"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[dim]|[/dim]"),
            TextColumn("{task.fields[summary]}"),
            TextColumn("[dim]|[/dim]"),
            TimeElapsedColumn(),
            console=self.console,
            expand=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task("Scanning...", total=None, summary=self._summary())

    def update(self, progress: JobProgress) -> None:
        """Record one processed file.

        Args:
            progress: Event emitted by the orchestrator.
        """
        self._counts[progress.status] += 1

        if self._progress is None or self._task_id is None:
            return

        self._progress.update(
            self._task_id,
            description=f"Optimizing {progress.current_file}",
            total=progress.total_files,
            completed=progress.current_index,
            summary=self._summary(),
        )

    def finish(self) -> None:
        """Stop the batch progress display."""
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

    def count(self, status: FileStatus) -> int:
        """Number of files seen with the given status."""
        return self._counts[status]


@dataclass
class IndeterminateSpinner:
    """Spinner for operations without measurable progress, such as watching.

    Attributes:
        message: Message to display next to the spinner.
        console: Rich console for output.
    """

    message: str
    console: Console = field(default_factory=Console)
    _progress: Progress | None = field(default=None, init=False, repr=False)
    _task_id: TaskID | None = field(default=None, init=False, repr=False)

    def start(self) -> None:
        """Start the spinner."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}[/bold blue]"),
            console=self.console,
            expand=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(self.message, total=None)

    def update(self, message: str) -> None:
        """Update the spinner message."""
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, description=message)

    def finish(self, success_message: str | None = None) -> None:
        """Stop the spinner.

        Args:
            success_message: Optional message to print after stopping.
        """
        if self._progress is not None:
            self._progress.stop()
            self._progress = None

        if success_message:
            self.console.print(f"[green]{success_message}[/green]")


@dataclass
class ProgressDisplayManager:
    """Creates progress displays that respect quiet mode.

    Attributes:
        quiet: If True, suppress all progress output.
        console: Rich console for output.
    """

    quiet: bool = False
    console: Console = field(default_factory=Console)

    def create_batch_progress(self) -> BatchProgressDisplay | _NullBatchProgress:
        """Create a batch progress display, or a null object in quiet mode."""
        if self.quiet:
            return _NullBatchProgress()
        return BatchProgressDisplay(console=self.console)

    def create_spinner(self, message: str) -> IndeterminateSpinner | _NullSpinner:
        """Create an indeterminate spinner, or a null object in quiet mode."""
        if self.quiet:
            return _NullSpinner()
        return IndeterminateSpinner(message=message, console=self.console)

    @contextmanager
    def spinner(self, message: str) -> Generator[IndeterminateSpinner | _NullSpinner, None, None]:
        """Context manager for an indeterminate spinner.

        Yields:
            A spinner that is automatically started and stopped.
        """
        spinner = self.create_spinner(message)
        spinner.start()
        try:
            yield spinner
        finally:
            spinner.finish()


@dataclass
class _NullBatchProgress:
    """Null object for BatchProgressDisplay when quiet mode is enabled."""

    _counts: dict[FileStatus, int] = field(
        default_factory=lambda: {status: 0 for status in FileStatus}, init=False
    )

    def start(self) -> None:
        """No-op."""

    def update(self, progress: JobProgress) -> None:
        """Track outcomes even in quiet mode."""
        self._counts[progress.status] += 1

    def finish(self) -> None:
        """No-op."""

    def count(self, status: FileStatus) -> int:
        """Number of files seen with the given status."""
        return self._counts[status]


@dataclass
class _NullSpinner:
    """Null object for IndeterminateSpinner when quiet mode is enabled."""

    def start(self) -> None:
        """No-op."""

    def update(self, message: str) -> None:
        """No-op."""

    def finish(self, success_message: str | None = None) -> None:
        """No-op."""


__all__ = [
    "BatchProgressDisplay",
    "IndeterminateSpinner",
    "ProgressDisplayManager",
]
