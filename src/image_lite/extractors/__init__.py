"""Image extractors package.

This package provides input discovery under the input directory and
Git LFS pointer handling.
"""

from image_lite.extractors.folder_scanner import (
    FolderNotFoundError,
    FolderScanner,
    FolderScannerError,
)
from image_lite.extractors.lfs_handler import LfsHandler, LfsPullError, PullResult

__all__ = [
    "FolderNotFoundError",
    "FolderScanner",
    "FolderScannerError",
    "LfsHandler",
    "LfsPullError",
    "PullResult",
]
