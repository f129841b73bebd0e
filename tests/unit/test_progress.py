"""Unit tests for the progress display."""

from __future__ import annotations

import io

from rich.console import Console

from image_lite.core.types import FileStatus, JobProgress
from image_lite.ui.progress import (
    BatchProgressDisplay,
    IndeterminateSpinner,
    ProgressDisplayManager,
)


def _console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=120)


def _event(index: int, status: FileStatus, total: int = 3) -> JobProgress:
    return JobProgress(
        current_file=f"f{index}.jpg", current_index=index, total_files=total, status=status
    )


class TestBatchProgressDisplay:
    """Tests for BatchProgressDisplay."""

    def test_update_tracks_counts_and_task(self) -> None:
        """Test that events advance the bar and the counts."""
        display = BatchProgressDisplay(console=_console())
        display.start()

        display.update(_event(1, FileStatus.SUCCESS))
        display.update(_event(2, FileStatus.FAILED))

        task = display._progress.tasks[0]
        assert task.total == 3
        assert task.completed == 2
        assert task.description == "Optimizing f2.jpg"
        assert "1 failed" in task.fields["summary"]
        display.finish()

        assert display.count(FileStatus.SUCCESS) == 1
        assert display.count(FileStatus.FAILED) == 1
        assert display.count(FileStatus.SKIPPED) == 0

    def test_update_before_start_only_counts(self) -> None:
        """Test that updates without a running display are counted."""
        display = BatchProgressDisplay(console=_console())
        display.update(_event(1, FileStatus.SKIPPED))
        assert display.count(FileStatus.SKIPPED) == 1

    def test_finish_is_idempotent(self) -> None:
        """Test that finishing twice is harmless."""
        display = BatchProgressDisplay(console=_console())
        display.start()
        display.finish()
        display.finish()


class TestIndeterminateSpinner:
    """Tests for IndeterminateSpinner."""

    def test_lifecycle(self) -> None:
        """Test start, update and finish with a message."""
        console = _console()
        spinner = IndeterminateSpinner(message="Watching", console=console)
        spinner.start()
        spinner.update("Watching (2 changes)")
        assert spinner._progress.tasks[0].description == "Watching (2 changes)"

        spinner.finish("Stopped")

        assert "Stopped" in console.file.getvalue()


class TestProgressDisplayManager:
    """Tests for ProgressDisplayManager."""

    def test_quiet_returns_null_objects(self) -> None:
        """Test that quiet mode produces silent displays that still count."""
        manager = ProgressDisplayManager(quiet=True, console=_console())

        progress = manager.create_batch_progress()
        progress.start()
        progress.update(_event(1, FileStatus.SUCCESS))
        progress.finish()

        assert not isinstance(progress, BatchProgressDisplay)
        assert progress.count(FileStatus.SUCCESS) == 1
        assert not isinstance(manager.create_spinner("x"), IndeterminateSpinner)

    def test_normal_mode_returns_displays(self) -> None:
        """Test real displays outside quiet mode."""
        manager = ProgressDisplayManager(quiet=False, console=_console())

        assert isinstance(manager.create_batch_progress(), BatchProgressDisplay)
        assert isinstance(manager.create_spinner("x"), IndeterminateSpinner)

    def test_spinner_context_manager(self) -> None:
        """Test that the spinner is stopped on exit."""
        manager = ProgressDisplayManager(quiet=False, console=_console())

        with manager.spinner("Working") as spinner:
            assert spinner._progress is not None

        assert spinner._progress is None
