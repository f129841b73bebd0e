"""Durable file writes.

Outputs, the checkpoint and other state files are written through a
temporary file in the target directory and renamed into place, so a crash
never leaves a truncated file behind.

Example:
    >>> from image_lite.utils.file_utils import atomic_write_text
    >>> atomic_write_text(".image-lite-state.json", "{}")
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

logger = logging.getLogger(__name__)


class AtomicWriteError(Exception):
    """Raised when atomic write operation fails.

    Attributes:
        path: The target path for the write operation.
        reason: Description of why the write failed.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Atomic write to {path} failed: {reason}")


@contextmanager
def atomic_write(path: str | Path) -> Generator[Path, None, None]:
    """Context manager for atomic file writes.

    Yields a temporary path in the same directory as the target. When the
    block exits normally the temporary file replaces the target with
    ``os.replace``, so readers never observe a partially written file.

    Args:
        path: Target file path.

    Yields:
        Path to the temporary file to write to.

    Raises:
        AtomicWriteError: If writing or the final rename fails.

    Example:
        >>> with atomic_write("state.json") as temp_path:
        ...     temp_path.write_text("{}")
    """
    target_path = Path(path)
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target_path.name}.",
            suffix=".tmp",
            dir=str(target_path.parent),
        )
    except OSError as e:
        raise AtomicWriteError(target_path, str(e)) from e
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        yield temp_path
        os.replace(temp_path, target_path)
        logger.debug("Atomic write completed: %s", target_path)
    except Exception as e:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                logger.debug("Could not remove temp file %s", temp_path)
        raise AtomicWriteError(target_path, str(e)) from e


def atomic_write_text(path: str | Path, content: str) -> None:
    """Atomically replace a text file's contents.

    Args:
        path: Target file path.
        content: Text to write (UTF-8).

    Raises:
        AtomicWriteError: If the write fails.
    """
    with atomic_write(path) as temp_path:
        temp_path.write_text(content, encoding="utf-8")


__all__ = [
    "AtomicWriteError",
    "atomic_write",
    "atomic_write_text",
]
