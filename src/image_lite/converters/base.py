"""Base processor interface for image encoding.

This module defines the abstract codec service the orchestrator talks to.
A processor receives one input and one OutputSpec per desired output and
reports an OutputResult for each; it never decides *what* to produce.

Example:
    >>> from image_lite.converters.base import BaseImageProcessor, OutputSpec
    >>>
    >>> class MyProcessor(BaseImageProcessor):
    ...     async def process(self, input_path, outputs):
    ...         ...
    ...     async def read_dimensions(self, input_path):
    ...         ...
    >>> results = await MyProcessor().process(
    ...     Path("original/a.jpg"),
    ...     [OutputSpec(output_path=Path("optimized/a.webp"), format="webp", quality=80)],
    ... )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from image_lite.core.types import ImageDimensions

EncodeFormat = Literal["webp", "avif", "jpeg", "png", "copy"]


class ImageProcessingError(Exception):
    """Exception raised when an image cannot be processed.

    Attributes:
        code: Symbolic error code, used to decide retryability.
        path: Input file involved.
    """

    def __init__(self, message: str, code: str | None = None, path: Path | None = None) -> None:
        self.code = code
        self.path = path
        super().__init__(message)


@dataclass(frozen=True)
class ResizeSpec:
    """Resize instruction for one output.

    Attributes:
        width: Target box width.
        height: Target box height.
        fit: "inside" keeps aspect ratio within the box, "cover" crops to fill it.
        without_enlargement: Never upscale.
    """

    width: int
    height: int
    fit: Literal["inside", "cover"] = "inside"
    without_enlargement: bool = True


@dataclass(frozen=True)
class OutputSpec:
    """One output the processor must produce.

    Attributes:
        output_path: Where to write the output.
        format: Encoder to use, or "copy" to copy the input unchanged.
        quality: Lossy quality (1-100).
        compression_level: Lossless compression effort (PNG, 0-9).
        resize: Optional resize instruction.
        is_thumbnail: Whether this output is the thumbnail.
    """

    output_path: Path
    format: EncodeFormat
    quality: int | None = None
    compression_level: int | None = None
    resize: ResizeSpec | None = None
    is_thumbnail: bool = False


@dataclass
class OutputResult:
    """Result of producing one output.

    Attributes:
        output_path: Output location.
        success: Whether the output was written.
        error: Error message on failure.
        code: Symbolic error code on failure.
        size: Size in bytes of the written output.
    """

    output_path: Path
    success: bool
    error: str | None = None
    code: str | None = None
    size: int = 0


class BaseImageProcessor(ABC):
    """Abstract base class for image codec services."""

    name: str = "base"

    def is_available(self) -> bool:
        """Check whether the codec backend can be used."""
        return True

    @abstractmethod
    async def process(self, input_path: Path, outputs: list[OutputSpec]) -> list[OutputResult]:
        """Produce every requested output for one input.

        Args:
            input_path: Source image.
            outputs: One spec per desired output.

        Returns:
            One OutputResult per spec, in the same order.
        """

    @abstractmethod
    async def read_dimensions(self, input_path: Path) -> ImageDimensions | None:
        """Read display dimensions of an image.

        Returns:
            Dimensions, or None if the image cannot be read.
        """


def raise_for_failures(input_path: Path, results: list[OutputResult]) -> list[Path]:
    """Turn failed output results into an ImageProcessingError.

    Args:
        input_path: Input that was processed.
        results: Results returned by a processor.

    Returns:
        Paths of the written outputs when every output succeeded.

    Raises:
        ImageProcessingError: If any output failed. The code of the first
            failure is carried so retryability can be decided.
    """
    failures = [r for r in results if not r.success]
    if not failures:
        return [r.output_path for r in results]

    details = "; ".join(f"{r.output_path.name}: {r.error}" for r in failures)
    raise ImageProcessingError(
        f"{len(failures)} of {len(results)} outputs failed for {input_path.name}: {details}",
        code=failures[0].code,
        path=input_path,
    )


__all__ = [
    "BaseImageProcessor",
    "EncodeFormat",
    "ImageProcessingError",
    "OutputResult",
    "OutputSpec",
    "ResizeSpec",
    "raise_for_failures",
]
