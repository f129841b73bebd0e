"""Image converters module.

This module provides the codec service interface and its Pillow
implementation.
"""

from image_lite.converters.base import (
    BaseImageProcessor,
    ImageProcessingError,
    OutputResult,
    OutputSpec,
    ResizeSpec,
)
from image_lite.converters.pillow import PillowImageProcessor

__all__ = [
    "BaseImageProcessor",
    "ImageProcessingError",
    "OutputResult",
    "OutputSpec",
    "PillowImageProcessor",
    "ResizeSpec",
]
