"""Git LFS pointer detection and retrieval.

Repositories that store images in Git LFS may contain small text pointer
files instead of image bytes when the objects were never fetched. Such a
file starts with ``version https://git-lfs.github.com/spec/v1``. The
handler can detect pointers and fetch the real content with
``git lfs pull --include <path>``.

Example:
    >>> handler = LfsHandler(repo_root=Path.cwd())
    >>> if handler.is_pointer(Path("original/hero.jpg")):
    ...     await handler.fetch(Path("original/hero.jpg"))
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from image_lite.utils.command_runner import (
    CommandNotFoundError,
    CommandRunner,
    CommandTimeoutError,
)
from image_lite.utils.constants import (
    LFS_POINTER_MAX_SIZE,
    LFS_POINTER_PREFIX,
    LFS_PULL_TIMEOUT,
)

logger = logging.getLogger(__name__)


class LfsPullError(Exception):
    """Raised when an LFS object could not be fetched.

    The message always contains "LFS", which marks the failure as transient
    for the retry policy.

    Attributes:
        path: File whose object could not be fetched.
        reason: Why the fetch failed.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"LFS pull failed for {path}: {reason}")


@dataclass
class PullResult:
    """Outcome of a pull.

    Attributes:
        success: Whether git reported success.
        error: Error text on failure.
    """

    success: bool
    error: str | None = None


class LfsHandler:
    """Detects LFS pointer files and pulls their content.

    Args:
        repo_root: Working tree the ``git lfs`` command runs in.
        command_runner: Runner used for ``git`` invocations.
        timeout: Per-pull timeout in seconds.
    """

    def __init__(
        self,
        repo_root: Path | None = None,
        command_runner: CommandRunner | None = None,
        timeout: float = LFS_PULL_TIMEOUT,
    ) -> None:
        self.repo_root = Path(repo_root) if repo_root is not None else Path.cwd()
        self.command_runner = command_runner or CommandRunner()
        self.timeout = timeout

    @staticmethod
    def is_pointer(path: Path) -> bool:
        """Check whether a file is an unfetched LFS pointer.

        Args:
            path: File to inspect.

        Returns:
            True if the file is a pointer stub.
        """
        try:
            if path.stat().st_size > LFS_POINTER_MAX_SIZE:
                return False
            with path.open("rb") as f:
                head = f.read(len(LFS_POINTER_PREFIX))
        except OSError:
            return False
        return head == LFS_POINTER_PREFIX

    def _include_path(self, path: Path) -> str:
        absolute = path if path.is_absolute() else Path.cwd() / path
        try:
            return absolute.resolve().relative_to(self.repo_root.resolve()).as_posix()
        except ValueError:
            return os.fspath(path)

    async def pull(self, path: Path) -> PullResult:
        """Run ``git lfs pull`` for a single file.

        Args:
            path: File to fetch.

        Returns:
            PullResult describing the outcome.
        """
        include = self._include_path(path)
        args = ["git", "lfs", "pull", "--include", include, "--exclude", ""]
        logger.info(f"Pulling LFS object for {include}")

        try:
            result = await self.command_runner.run_async(
                args, timeout=self.timeout, cwd=self.repo_root
            )
        except (CommandNotFoundError, CommandTimeoutError) as e:
            return PullResult(success=False, error=str(e))

        if not result.success:
            return PullResult(success=False, error=result.stderr.strip() or f"exit {result.returncode}")
        return PullResult(success=True)

    async def fetch(self, path: Path) -> None:
        """Pull a pointer's content and verify it was replaced.

        Args:
            path: Pointer file to fetch.

        Raises:
            LfsPullError: If the pull fails or the file is still a pointer.
        """
        result = await self.pull(path)
        if not result.success:
            raise LfsPullError(path, result.error or "unknown error")
        if self.is_pointer(path):
            raise LfsPullError(path, "file is still a pointer after pull")
        logger.debug(f"LFS object fetched: {path}")


__all__ = [
    "LfsHandler",
    "LfsPullError",
    "PullResult",
]
