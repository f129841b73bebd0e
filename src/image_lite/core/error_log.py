"""Append-only error log for terminal per-file failures.

Each failure becomes one JSON object per line:

    {"timestamp": "...", "file": "products/shoe.jpg",
     "error": {"message": "...", "code": "EBUSY", "stack": "..."},
     "context": {"operation": "process", "retryCount": 3}}

Entries are mirrored in memory for the end-of-job report. A failure to
write the log is reported through the application logger and never
interrupts the job.
"""

from __future__ import annotations

import errno
import json
import logging
import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from image_lite.core.types import ErrorInfo, utc_timestamp

logger = logging.getLogger(__name__)


def error_code(error: BaseException) -> str | None:
    """Derive a symbolic code for an error.

    A string ``code`` attribute wins; otherwise an ``OSError`` errno is
    mapped to its symbolic name.

    Example:
        >>> error_code(FileNotFoundError(2, "No such file"))
        'ENOENT'
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code

    if isinstance(error, OSError) and error.errno is not None:
        return errno.errorcode.get(error.errno)

    return None


def describe_error(error: BaseException) -> ErrorInfo:
    """Summarize an error as message and code."""
    return ErrorInfo(message=str(error) or type(error).__name__, code=error_code(error))


@dataclass
class ErrorLogEntry:
    """One line of the error log.

    Attributes:
        timestamp: ISO timestamp of the failure.
        file: Relative path of the failing file.
        message: Error message.
        code: Symbolic error code.
        stack: Formatted traceback.
        context: Caller context, always including ``retryCount``.
    """

    timestamp: str
    file: str
    message: str
    code: str | None = None
    stack: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON layout."""
        return {
            "timestamp": self.timestamp,
            "file": self.file,
            "error": {"message": self.message, "code": self.code, "stack": self.stack},
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ErrorLogEntry:
        """Create from the on-disk JSON layout."""
        error = data.get("error") or {}
        return cls(
            timestamp=str(data.get("timestamp", "")),
            file=str(data.get("file", "")),
            message=str(error.get("message", "")),
            code=error.get("code"),
            stack=error.get("stack"),
            context=dict(data.get("context") or {}),
        )


class ErrorLog:
    """JSON-lines error sink with an in-memory mirror.

    Args:
        path: Location of the log file. Parent directories are created on
            first write.

    Example:
        >>> log = ErrorLog(Path("image-optimization-errors.log"))
        >>> log.append("a.jpg", OSError(16, "busy"), {"operation": "process"}, retry_count=3)
        >>> len(log)
        1
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._entries: list[ErrorLogEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[ErrorLogEntry]:
        """Entries appended during this process."""
        return list(self._entries)

    def append(
        self,
        file: str,
        error: BaseException,
        context: dict[str, Any] | None = None,
        retry_count: int = 0,
    ) -> ErrorLogEntry:
        """Record a terminal failure.

        Args:
            file: Relative path of the failing file.
            error: The final error.
            context: Extra caller context.
            retry_count: Number of attempts made.

        Returns:
            The entry that was recorded.
        """
        info = describe_error(error)
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        entry = ErrorLogEntry(
            timestamp=utc_timestamp(),
            file=file,
            message=info.message,
            code=info.code,
            stack=stack or None,
            context={**(context or {}), "retryCount": retry_count},
        )
        self._entries.append(entry)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write error log {self.path}: {e}")

        return entry

    def read(self) -> list[ErrorLogEntry]:
        """Read every entry in the log file, including earlier runs.

        Lines that are not valid JSON are skipped.
        """
        if not self.path.exists():
            return []

        entries: list[ErrorLogEntry] = []
        with self.path.open("r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(ErrorLogEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, AttributeError):
                    logger.warning(f"Skipping malformed error log line {line_number} in {self.path}")
        return entries

    def clear(self) -> None:
        """Delete the log file and forget mirrored entries."""
        self._entries.clear()
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove error log {self.path}: {e}")


__all__ = [
    "ErrorLog",
    "ErrorLogEntry",
    "describe_error",
    "error_code",
]
