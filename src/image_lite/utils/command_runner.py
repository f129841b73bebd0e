"""Subprocess wrapper for the ``git`` invocations made during a job.

Only the LFS handler shells out. It needs the exit status and captured
output of a single command, bounded by a timeout, so that a failed pull
becomes a per-file error instead of an exception escaping the run.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from image_lite.utils.constants import SUBPROCESS_DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Exit status and decoded output of a finished command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0


class CommandNotFoundError(Exception):
    """Raised when the executable is not on PATH.

    Attributes:
        command: Name of the missing executable.
    """

    INSTALL_HINTS = {
        "git": "Install git from https://git-scm.com/downloads",
        "git-lfs": "Install with: git lfs install (see https://git-lfs.com)",
    }

    def __init__(self, command: str) -> None:
        self.command = command
        message = f"Command '{command}' not found."
        if command in self.INSTALL_HINTS:
            message = f"{message} {self.INSTALL_HINTS[command]}"
        super().__init__(message)


class CommandTimeoutError(Exception):
    """Raised when a command is killed for exceeding its timeout.

    Attributes:
        command: The command line that was killed.
        timeout: Limit in seconds.
    """

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command '{command}' timed out after {timeout:.1f} seconds.")


class CommandRunner:
    """Runs external commands without blocking the event loop.

    Example:
        >>> runner = CommandRunner()
        >>> result = await runner.run_async(["git", "lfs", "version"])
        >>> result.success
        True
    """

    @staticmethod
    def check_command_exists(command: str) -> bool:
        """Return True if ``command`` resolves on PATH."""
        return shutil.which(command) is not None

    async def run_async(
        self,
        args: list[str],
        *,
        timeout: float | None = SUBPROCESS_DEFAULT_TIMEOUT,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run ``args`` and capture its output.

        A non-zero exit status is reported through the result, never raised.

        Args:
            args: Executable followed by its arguments.
            timeout: Seconds before the process is killed, or None to wait.
            cwd: Working directory for the process.

        Returns:
            The exit status with decoded stdout and stderr.

        Raises:
            CommandNotFoundError: If the executable cannot be found.
            CommandTimeoutError: If the process outlives ``timeout``.
        """
        executable = args[0] if args else ""
        if not self.check_command_exists(executable):
            raise CommandNotFoundError(executable)

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd is not None else None,
            )
        except FileNotFoundError as e:
            raise CommandNotFoundError(executable) from e

        command_line = " ".join(args)
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(command_line, timeout or 0.0) from e

        logger.debug(f"{command_line} exited with {process.returncode}")
        return CommandResult(
            returncode=process.returncode or 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


__all__ = [
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeoutError",
]
