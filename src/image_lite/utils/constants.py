"""Centralized constants for image_lite.

This module contains all magic numbers and default values used
throughout the application. Import from here to ensure consistency.

Example:
    >>> from image_lite.utils.constants import (
    ...     DEFAULT_MAX_RETRIES,
    ...     IMAGE_EXTENSIONS,
    ... )
    >>> print(f"Retries: {DEFAULT_MAX_RETRIES}")
"""

from __future__ import annotations

from pathlib import Path

# =============================================================================
# Size Units (bytes)
# =============================================================================
BYTES_PER_MB = 1024 * 1024

# =============================================================================
# Supported Files
# =============================================================================
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
PASSTHROUGH_EXTENSIONS = frozenset({".gif"})

SUPPORTED_FORMATS = ("webp", "avif", "original", "jpeg", "png")

# =============================================================================
# Quality Settings
# =============================================================================
MIN_QUALITY = 1
MAX_QUALITY = 100

DEFAULT_FORMATS = ("webp", "avif", "original")
DEFAULT_QUALITY_MAP = {"webp": 80, "avif": 80, "jpeg": 80}

# Fallbacks when a format has no resolved quality
FALLBACK_WEBP_QUALITY = 85
FALLBACK_AVIF_QUALITY = 80
FALLBACK_JPEG_QUALITY = 90
FALLBACK_THUMBNAIL_QUALITY = 70
PNG_COMPRESSION_LEVEL = 9

# =============================================================================
# Thumbnails and Resize
# =============================================================================
DEFAULT_THUMBNAIL_WIDTH = 200
MIN_THUMBNAIL_WIDTH = 10
MAX_THUMBNAIL_WIDTH = 1000
THUMBNAIL_SUFFIX = "-thumb"

DEFAULT_RESIZE_WIDTH = 2000
DEFAULT_RESIZE_HEIGHT = 2000

# =============================================================================
# Error Recovery
# =============================================================================
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_CHECKPOINT_INTERVAL = 1

RETRYABLE_ERROR_CODES = frozenset({"ENOENT", "EBUSY", "ETIMEDOUT", "ECONNRESET", "ENOTFOUND"})
REMOTE_FETCH_ERROR_MARKER = "LFS"

STATE_FILE_VERSION = "1.0"

# =============================================================================
# Default Paths
# =============================================================================
DEFAULT_INPUT_DIR = "original"
DEFAULT_OUTPUT_DIR = "optimized"
DEFAULT_ERROR_LOG = "image-optimization-errors.log"
DEFAULT_STATE_FILE = ".image-lite-state.json"
CONFIG_FILE_NAMES = (".imagerc", ".imagerc.json")

DEFAULT_LOG_DIR = Path.home() / ".local" / "share" / "image_lite" / "logs"

# =============================================================================
# Git LFS
# =============================================================================
LFS_POINTER_PREFIX = b"version https://git-lfs.github.com/spec/v1"
LFS_POINTER_MAX_SIZE = 1024  # pointer files are tiny text stubs
LFS_PULL_TIMEOUT = 300.0  # seconds

# =============================================================================
# Watch Mode (seconds)
# =============================================================================
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_SETTLE_TIME = 0.5

# =============================================================================
# Subprocess
# =============================================================================
SUBPROCESS_DEFAULT_TIMEOUT = 120  # 2 minutes
