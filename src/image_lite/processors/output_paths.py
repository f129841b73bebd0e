"""Output planning for one input image.

Given an input path relative to the input root and a resolved quality map,
ProcessingConfigGenerator produces one OutputSpec per output. Outputs mirror
the input's subdirectory under the output root:

    original/products/shoe.jpg  ->  optimized/products/shoe.webp
                                    optimized/products/shoe.avif
                                    optimized/products/shoe.jpg
                                    optimized/products/shoe-thumb.webp

Format rules:
    | Format    | Encoder                         | Quality key (fallback) |
    |-----------|---------------------------------|------------------------|
    | webp      | WebP, skipped for .webp inputs  | webp (85)              |
    | avif      | AVIF                            | avif (80)              |
    | original  | same format as the input        | jpeg (90) / PNG lvl 9  |
    | jpeg, png | explicit re-encode              | jpeg (90) / PNG lvl 9  |
    | thumbnail | WebP, cover-cropped square      | thumbnail (70)         |

GIF inputs are copied unchanged and get no other outputs.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path, PurePosixPath

from image_lite.converters.base import OutputSpec, ResizeSpec
from image_lite.core.config import Config
from image_lite.utils.constants import (
    FALLBACK_AVIF_QUALITY,
    FALLBACK_JPEG_QUALITY,
    FALLBACK_THUMBNAIL_QUALITY,
    FALLBACK_WEBP_QUALITY,
    PASSTHROUGH_EXTENSIONS,
    PNG_COMPRESSION_LEVEL,
    THUMBNAIL_SUFFIX,
)

logger = logging.getLogger(__name__)

_JPEG_SUFFIXES = frozenset({".jpg", ".jpeg"})


class ProcessingConfigGenerator:
    """Plans outputs for inputs according to the job configuration.

    Args:
        config: Job configuration.
        output_root: Directory receiving outputs.
    """

    def __init__(self, config: Config, output_root: Path) -> None:
        self.config = config
        self.output_root = Path(output_root)

    @staticmethod
    def is_passthrough(rel_path: str) -> bool:
        """Whether the input is copied unchanged (GIF)."""
        return PurePosixPath(rel_path).suffix.lower() in PASSTHROUGH_EXTENSIONS

    @property
    def thumbnails_enabled(self) -> bool:
        """Whether a thumbnail is produced per image."""
        return self.config.generate_thumbnails and list(self.config.formats) != ["original"]

    def output_paths(self, rel_path: str) -> list[Path]:
        """Every output path an input should produce."""
        return [spec.output_path for spec in self.plan(rel_path, self.config.quality)]

    def plan(self, rel_path: str, quality: Mapping[str, int]) -> list[OutputSpec]:
        """Plan every output for one input.

        Args:
            rel_path: Input path relative to the input root, forward slashes.
            quality: Resolved quality map for this input.

        Returns:
            OutputSpecs in a stable order without duplicate paths.
        """
        relative = PurePosixPath(rel_path)
        target_dir = self.output_root.joinpath(*relative.parent.parts)
        suffix = relative.suffix.lower()

        if self.is_passthrough(rel_path):
            return [OutputSpec(output_path=target_dir / relative.name, format="copy")]

        resize = ResizeSpec(
            width=self.config.resize.width,
            height=self.config.resize.height,
            fit=self.config.resize.fit,
            without_enlargement=self.config.resize.without_enlargement,
        )
        stem = relative.stem
        specs: list[OutputSpec] = []

        def add(spec: OutputSpec) -> None:
            if all(existing.output_path != spec.output_path for existing in specs):
                specs.append(spec)

        for fmt in self.config.formats:
            if fmt == "webp":
                if suffix == ".webp":
                    continue
                add(self._webp(target_dir / f"{stem}.webp", quality, resize))
            elif fmt == "avif":
                add(
                    OutputSpec(
                        output_path=target_dir / f"{stem}.avif",
                        format="avif",
                        quality=quality.get("avif", FALLBACK_AVIF_QUALITY),
                        resize=resize,
                    )
                )
            elif fmt == "original":
                original_path = target_dir / relative.name
                if suffix in _JPEG_SUFFIXES:
                    add(self._jpeg(original_path, quality, resize))
                elif suffix == ".png":
                    add(self._png(original_path, resize))
                elif suffix == ".webp":
                    add(self._webp(original_path, quality, resize))
                else:
                    logger.warning(f"No encoder for original format of {rel_path}, skipping output")
            elif fmt == "jpeg":
                add(self._jpeg(target_dir / f"{stem}.jpg", quality, resize))
            elif fmt == "png":
                add(self._png(target_dir / f"{stem}.png", resize))

        if self.thumbnails_enabled:
            width = self.config.thumbnail_width
            add(
                OutputSpec(
                    output_path=target_dir / f"{stem}{THUMBNAIL_SUFFIX}.webp",
                    format="webp",
                    quality=quality.get("thumbnail", FALLBACK_THUMBNAIL_QUALITY),
                    resize=ResizeSpec(width=width, height=width, fit="cover", without_enlargement=True),
                    is_thumbnail=True,
                )
            )

        return specs

    @staticmethod
    def _webp(path: Path, quality: Mapping[str, int], resize: ResizeSpec) -> OutputSpec:
        return OutputSpec(
            output_path=path,
            format="webp",
            quality=quality.get("webp", FALLBACK_WEBP_QUALITY),
            resize=resize,
        )

    @staticmethod
    def _jpeg(path: Path, quality: Mapping[str, int], resize: ResizeSpec) -> OutputSpec:
        return OutputSpec(
            output_path=path,
            format="jpeg",
            quality=quality.get("jpeg", FALLBACK_JPEG_QUALITY),
            resize=resize,
        )

    @staticmethod
    def _png(path: Path, resize: ResizeSpec) -> OutputSpec:
        return OutputSpec(
            output_path=path,
            format="png",
            compression_level=PNG_COMPRESSION_LEVEL,
            resize=resize,
        )


__all__ = ["ProcessingConfigGenerator"]
