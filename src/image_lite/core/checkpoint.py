"""Checkpoint persistence for resumable jobs.

The orchestrator owns a ProcessedLedger, an ordered map from relative path
to the outcome recorded for that file. CheckpointStore snapshots the ledger
to a versioned JSON file after each file (or every N files) and restores it
when a job is resumed.

File layout (version "1.0"):

    {
      "version": "1.0",
      "startedAt": "...", "lastUpdatedAt": "...",
      "configuration": {...},
      "progress": {"total": 10, "processed": 4, "succeeded": 3,
                   "failed": 1, "remaining": 6},
      "files": {"processed": [{"path": ..., "status": ..., ...}],
                "pending": ["e.jpg", ...]}
    }

Writes go to a temporary file that is renamed over the checkpoint, so an
interrupted save leaves the previous checkpoint intact.

Example:
    >>> store = CheckpointStore(Path(".image-lite-state.json"))
    >>> ledger = ProcessedLedger()
    >>> ledger.record(ProcessedFileRecord(path="a.jpg", status=FileStatus.SUCCESS))
    >>> store.save(ledger, total=2, pending=["b.jpg"])
    >>> store.load().progress.remaining
    1
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

from image_lite.core.error_log import ErrorLog
from image_lite.core.types import (
    FileStatus,
    JobState,
    ProcessedFileRecord,
    ProgressSnapshot,
    utc_timestamp,
)
from image_lite.utils.constants import STATE_FILE_VERSION
from image_lite.utils.file_utils import AtomicWriteError, atomic_write_text

logger = logging.getLogger(__name__)


class ProcessedLedger:
    """Ordered record of every file that reached a terminal state.

    Recording a path that is already present replaces the earlier record
    and keeps its position.
    """

    def __init__(self, records: Iterable[ProcessedFileRecord] = ()) -> None:
        self._records: dict[str, ProcessedFileRecord] = {}
        for record in records:
            self.record(record)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __iter__(self) -> Iterator[ProcessedFileRecord]:
        return iter(list(self._records.values()))

    def record(self, record: ProcessedFileRecord) -> None:
        """Add or replace the record for a path."""
        self._records[record.path] = record

    def get(self, path: str) -> ProcessedFileRecord | None:
        """Get the record for a path, if any."""
        return self._records.get(path)

    def is_completed(self, path: str) -> bool:
        """Whether a path finished without failure and can be skipped on resume."""
        record = self._records.get(path)
        return record is not None and record.status is not FileStatus.FAILED

    @property
    def failures(self) -> list[ProcessedFileRecord]:
        """Records with failed status."""
        return [r for r in self._records.values() if r.status is FileStatus.FAILED]

    def progress(self, total: int) -> ProgressSnapshot:
        """Compute aggregate progress against a total file count.

        Skipped files count as succeeded.
        """
        processed = len(self._records)
        failed = len(self.failures)
        total = max(total, processed)
        return ProgressSnapshot(
            total=total,
            processed=processed,
            succeeded=processed - failed,
            failed=failed,
            remaining=total - processed,
        )

    def clear(self) -> None:
        """Forget every record."""
        self._records.clear()


class CheckpointStore:
    """Durable snapshot of job progress.

    Args:
        state_file: Location of the checkpoint file.
        error_log: Error log removed together with the checkpoint on clear.
    """

    def __init__(self, state_file: Path, error_log: ErrorLog | None = None) -> None:
        self.state_file = Path(state_file)
        self.error_log = error_log
        self._started_at: str | None = None

    @property
    def exists(self) -> bool:
        """Whether a checkpoint file is present."""
        return self.state_file.exists()

    def save(
        self,
        ledger: ProcessedLedger,
        total: int,
        pending: Iterable[str] = (),
        configuration: dict[str, Any] | None = None,
    ) -> JobState | None:
        """Write a fresh snapshot of the ledger.

        Progress is recomputed from the ledger on every call.

        Args:
            ledger: The orchestrator's ledger.
            total: Number of files in the job.
            pending: Paths not yet processed.
            configuration: Settings snapshot stored alongside progress.

        Returns:
            The state that was written, or None if the write failed.
        """
        now = utc_timestamp()
        if self._started_at is None:
            self._started_at = now

        state = JobState(
            version=STATE_FILE_VERSION,
            started_at=self._started_at,
            last_updated_at=now,
            configuration=dict(configuration or {}),
            progress=ledger.progress(total),
            processed=list(ledger),
            pending=list(pending),
        )

        try:
            atomic_write_text(self.state_file, json.dumps(state.to_dict(), indent=2, default=str))
        except AtomicWriteError as e:
            logger.error(f"Failed to save checkpoint: {e}")
            return None

        logger.debug(
            f"Checkpoint saved: {state.progress.processed}/{state.progress.total} processed"
        )
        return state

    def load(self) -> JobState | None:
        """Load the checkpoint.

        A missing, unreadable or differently versioned checkpoint is treated
        as absent.

        Returns:
            JobState, or None if there is nothing to resume.
        """
        if not self.state_file.exists():
            return None

        try:
            with self.state_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {self.state_file}: {e}")
            return None

        if not isinstance(data, dict) or data.get("version") != STATE_FILE_VERSION:
            found = data.get("version") if isinstance(data, dict) else None
            logger.warning(
                f"Ignoring checkpoint {self.state_file} with version {found!r} "
                f"(expected {STATE_FILE_VERSION})"
            )
            return None

        try:
            state = JobState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed checkpoint {self.state_file}: {e}")
            return None

        self._started_at = state.started_at or None
        return state

    def clear(self, ledger: ProcessedLedger | None = None) -> None:
        """Remove the checkpoint and error log and empty the ledger."""
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove checkpoint {self.state_file}: {e}")

        if self.error_log is not None:
            self.error_log.clear()

        if ledger is not None:
            ledger.clear()

        self._started_at = None
        logger.debug("Checkpoint cleared")


__all__ = [
    "CheckpointStore",
    "ProcessedLedger",
]
