"""UI components for image-lite.

This module provides Rich-based progress displays for batch runs and
watch mode.
"""

from __future__ import annotations

from image_lite.ui.progress import (
    BatchProgressDisplay,
    IndeterminateSpinner,
    ProgressDisplayManager,
)

__all__ = [
    "BatchProgressDisplay",
    "IndeterminateSpinner",
    "ProgressDisplayManager",
]
