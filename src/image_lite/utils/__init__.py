"""Utility modules for image-lite.

This package provides common utilities used across image-lite.
"""

from image_lite.utils.command_runner import (
    CommandNotFoundError,
    CommandResult,
    CommandRunner,
    CommandTimeoutError,
)
from image_lite.utils.file_utils import (
    AtomicWriteError,
    atomic_write,
    atomic_write_text,
)

__all__ = [
    "AtomicWriteError",
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "CommandTimeoutError",
    "atomic_write",
    "atomic_write_text",
]
