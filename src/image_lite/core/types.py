"""Core type definitions for the image optimization job.

This module defines the data classes shared by the rule engine, the
recovery layer and the orchestrator: per-file outcome records, the
persisted job state, execution results and the end-of-job report.

Example:
    >>> from image_lite.core.types import FileStatus, ProcessedFileRecord
    >>> record = ProcessedFileRecord(path="products/shoe.jpg", status=FileStatus.SUCCESS)
    >>> record.to_dict()["status"]
    'success'
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class FileStatus(Enum):
    """Terminal status of a single file within a job.

    Attributes:
        SUCCESS: All outputs were written.
        FAILED: Processing failed after recovery was exhausted.
        SKIPPED: Nothing to do (up to date or an unfetched LFS pointer).
    """

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SkipReason(Enum):
    """Why a file reached the skipped state."""

    UP_TO_DATE = "up-to-date"
    LFS_POINTER = "lfs-pointer"
    RESUMED = "resumed"


class FailureKind(Enum):
    """Why a file reached the failed state.

    Attributes:
        PROCESSING: The codec could not produce one or more outputs.
        LFS_ERROR: Fetching the LFS object failed or left a pointer behind.
        MISSING_INPUT: The input disappeared before it could be checked.
    """

    PROCESSING = "processing-error"
    LFS_ERROR = "lfs-error"
    MISSING_INPUT = "missing-input"


@dataclass(frozen=True)
class ImageDimensions:
    """Pixel dimensions of an image."""

    width: int
    height: int


@dataclass
class ErrorInfo:
    """Serializable summary of an error.

    Attributes:
        message: Human-readable error message.
        code: Symbolic error code (e.g. "ENOENT"), if any.
    """

    message: str
    code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {"message": self.message, "code": self.code}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorInfo:
        """Create from dictionary."""
        return cls(message=str(data.get("message", "")), code=data.get("code"))


@dataclass
class ProcessedFileRecord:
    """Outcome of one file in one run.

    Attributes:
        path: Path relative to the input root, forward-slash separated.
        status: Terminal status.
        attempts: Number of attempts made (at least 1).
        error: Error summary for failed files.
        outputs: Output paths written for successful files.
        reason: SkipReason or FailureKind value explaining the status.
    """

    path: str
    status: FileStatus
    attempts: int = 1
    error: ErrorInfo | None = None
    outputs: list[str] = field(default_factory=list)
    reason: str | None = None

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        if isinstance(self.status, str):
            self.status = FileStatus(self.status)
        if isinstance(self.error, dict):
            self.error = ErrorInfo.from_dict(self.error)
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        data: dict[str, Any] = {
            "path": self.path,
            "status": self.status.value,
            "attempts": self.attempts,
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        if self.outputs:
            data["outputs"] = list(self.outputs)
        if self.reason is not None:
            data["reason"] = self.reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessedFileRecord:
        """Create from dictionary."""
        error = data.get("error")
        return cls(
            path=data["path"],
            status=FileStatus(data["status"]),
            attempts=max(1, int(data.get("attempts", 1))),
            error=ErrorInfo.from_dict(error) if error else None,
            outputs=list(data.get("outputs", [])),
            reason=data.get("reason"),
        )


@dataclass
class ProgressSnapshot:
    """Aggregate job progress.

    Invariants: ``processed + remaining == total`` and
    ``succeeded + failed == processed``. Skipped files count as succeeded.
    """

    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    remaining: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to JSON-serializable dictionary."""
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "remaining": self.remaining,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressSnapshot:
        """Create from dictionary."""
        return cls(
            total=int(data.get("total", 0)),
            processed=int(data.get("processed", 0)),
            succeeded=int(data.get("succeeded", 0)),
            failed=int(data.get("failed", 0)),
            remaining=int(data.get("remaining", 0)),
        )


@dataclass
class JobState:
    """Persisted checkpoint of a job.

    Attributes:
        version: Schema version of the checkpoint file.
        started_at: ISO timestamp of the first save of this job.
        last_updated_at: ISO timestamp of the latest save.
        configuration: Snapshot of the settings the job ran with.
        progress: Aggregate counters.
        processed: Records of files that reached a terminal state.
        pending: Relative paths not yet processed.
    """

    version: str
    started_at: str
    last_updated_at: str
    configuration: dict[str, Any] = field(default_factory=dict)
    progress: ProgressSnapshot = field(default_factory=ProgressSnapshot)
    processed: list[ProcessedFileRecord] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON layout."""
        return {
            "version": self.version,
            "startedAt": self.started_at,
            "lastUpdatedAt": self.last_updated_at,
            "configuration": self.configuration,
            "progress": self.progress.to_dict(),
            "files": {
                "processed": [record.to_dict() for record in self.processed],
                "pending": list(self.pending),
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobState:
        """Create from the on-disk JSON layout.

        Raises:
            KeyError: If a required key is missing.
            ValueError: If a record has an invalid status.
        """
        files = data.get("files") or {}
        return cls(
            version=str(data["version"]),
            started_at=str(data.get("startedAt", "")),
            last_updated_at=str(data.get("lastUpdatedAt", "")),
            configuration=dict(data.get("configuration") or {}),
            progress=ProgressSnapshot.from_dict(data.get("progress") or {}),
            processed=[ProcessedFileRecord.from_dict(item) for item in files.get("processed", [])],
            pending=list(files.get("pending", [])),
        )


@dataclass
class ExecutionResult:
    """Outcome of running one unit of work under the recovery coordinator.

    Attributes:
        success: Whether the operation eventually succeeded.
        result: Return value of the operation on success.
        error: Final error on failure.
        attempts: Number of attempts made.
    """

    success: bool
    result: Any = None
    error: BaseException | None = None
    attempts: int = 0


@dataclass
class JobProgress:
    """Progress event emitted by the orchestrator after each file.

    Attributes:
        current_file: Relative path of the file just handled.
        current_index: 1-based position in the job's work list.
        total_files: Number of files in the work list.
        status: Terminal status of the file.
    """

    current_file: str
    current_index: int
    total_files: int
    status: FileStatus


@dataclass
class JobReport:
    """Summary report for one job run.

    Attributes:
        started_at: When the job started.
        completed_at: When the job finished.
        total_files: Files discovered in the input tree.
        resumed_files: Files skipped because a checkpoint marked them done.
        succeeded: Files whose outputs were written.
        skipped: Files that were already up to date.
        failed: Files that failed (including LFS errors).
        lfs_pointers: Files skipped because they are unfetched LFS pointers.
        lfs_errors: Files whose LFS pull failed.
        error_log_path: Location of the error log.
        records: Records for the files handled in this run.
    """

    started_at: datetime
    completed_at: datetime | None = None
    total_files: int = 0
    resumed_files: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    lfs_pointers: int = 0
    lfs_errors: int = 0
    error_log_path: str | None = None
    records: list[ProcessedFileRecord] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Number of files handled in this run."""
        return len(self.records)

    @property
    def has_failures(self) -> bool:
        """Whether any file failed."""
        return self.failed > 0

    @property
    def duration_seconds(self) -> float:
        """Wall-clock duration of the job."""
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def add_record(self, record: ProcessedFileRecord) -> None:
        """Add a file outcome to the report.

        Args:
            record: The record to add.
        """
        self.records.append(record)

        if record.status is FileStatus.SUCCESS:
            self.succeeded += 1
        elif record.status is FileStatus.SKIPPED:
            if record.reason == SkipReason.LFS_POINTER.value:
                self.lfs_pointers += 1
            else:
                self.skipped += 1
        else:
            self.failed += 1
            if record.reason == FailureKind.LFS_ERROR.value:
                self.lfs_errors += 1


# Callback type aliases
ProgressCallback = Callable[[JobProgress], None]


__all__ = [
    "ErrorInfo",
    "ExecutionResult",
    "FailureKind",
    "FileStatus",
    "ImageDimensions",
    "JobProgress",
    "JobReport",
    "JobState",
    "ProcessedFileRecord",
    "ProgressCallback",
    "ProgressSnapshot",
    "SkipReason",
    "utc_timestamp",
]
