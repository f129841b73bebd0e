"""Image discovery under the input root.

The scanner walks the input directory recursively and returns paths
relative to it, forward-slash separated and sorted, so that the enumeration
order is identical between runs over an unchanged tree.

Example:
    >>> scanner = FolderScanner(Path("original"))
    >>> scanner.scan()
    ['banner.png', 'products/shoe.jpg', 'products/sock.webp']
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

from image_lite.utils.constants import IMAGE_EXTENSIONS

logger = logging.getLogger(__name__)


class FolderScannerError(Exception):
    """Base exception for folder scanning."""


class FolderNotFoundError(FolderScannerError):
    """Raised when the input folder does not exist.

    Attributes:
        path: The path that was not found.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Folder not found: {path}")


class FolderScanner:
    """Enumerates supported images below a root directory.

    Attributes:
        root_path: Directory to scan.
        extensions: Lower-case extensions (with dot) to include.
        exclude_patterns: Basename globs to skip.
    """

    # Temporary files and macOS metadata
    DEFAULT_EXCLUDE_PATTERNS = frozenset({"._*", ".DS_Store", "*.tmp"})

    def __init__(
        self,
        root_path: Path | str,
        *,
        extensions: frozenset[str] | None = None,
        exclude_patterns: frozenset[str] | None = None,
    ) -> None:
        self.root_path = Path(root_path)
        self.extensions = extensions or IMAGE_EXTENSIONS
        self.exclude_patterns = (
            exclude_patterns if exclude_patterns is not None else self.DEFAULT_EXCLUDE_PATTERNS
        )

    def _is_candidate(self, name: str) -> bool:
        if any(fnmatch.fnmatch(name, pattern) for pattern in self.exclude_patterns):
            return False
        return os.path.splitext(name)[1].lower() in self.extensions

    def scan(self) -> list[str]:
        """List supported images relative to the root.

        Returns:
            Sorted relative paths using forward slashes.

        Raises:
            FolderNotFoundError: If the root does not exist or is not a directory.
        """
        if not self.root_path.is_dir():
            raise FolderNotFoundError(self.root_path)

        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root_path):
            # Skip hidden directories such as .git
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            base = Path(dirpath).relative_to(self.root_path)
            for name in filenames:
                if self._is_candidate(name):
                    found.append((base / name).as_posix())

        found.sort()
        logger.debug(f"Found {len(found)} images under {self.root_path}")
        return found


__all__ = [
    "FolderNotFoundError",
    "FolderScanner",
    "FolderScannerError",
]
