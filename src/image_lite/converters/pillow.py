"""Pillow-backed image processor.

Decodes each input once, applies EXIF orientation, then encodes every
requested output (WebP, AVIF, JPEG, PNG or a byte-for-byte copy). Outputs
are written through a temporary file and renamed into place so a crash
never leaves a truncated output that looks up to date.

Metadata handling:
    | preserve_metadata        | EXIF written to outputs             |
    |--------------------------|-------------------------------------|
    | False                    | none                                |
    | True / {"all": true}     | everything                          |
    | {"copyright": true, ...} | only the selected tag groups        |

GPS data is dropped unless ``gps`` (or ``all``) is selected.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from image_lite.converters.base import (
    BaseImageProcessor,
    OutputResult,
    OutputSpec,
    ResizeSpec,
)
from image_lite.core.config import MetadataPreservation
from image_lite.core.error_log import error_code
from image_lite.core.types import ImageDimensions
from image_lite.utils.constants import PNG_COMPRESSION_LEVEL
from image_lite.utils.file_utils import AtomicWriteError, atomic_write

logger = logging.getLogger(__name__)

PIL_FORMATS = {"webp": "WEBP", "avif": "AVIF", "jpeg": "JPEG", "png": "PNG"}

# Base IFD tags kept per metadata group
_COPYRIGHT_TAGS = frozenset({ExifTags.Base.Copyright})
_CREATOR_TAGS = frozenset({ExifTags.Base.Artist, ExifTags.Base.Software, ExifTags.Base.HostComputer})
_DATETIME_TAGS = frozenset({ExifTags.Base.DateTime})
_CAMERA_TAGS = frozenset({ExifTags.Base.Make, ExifTags.Base.Model})
_EXIF_IFD_DATETIME_TAGS = frozenset(
    {
        ExifTags.Base.DateTimeOriginal,
        ExifTags.Base.DateTimeDigitized,
        ExifTags.Base.OffsetTime,
        ExifTags.Base.OffsetTimeOriginal,
        ExifTags.Base.OffsetTimeDigitized,
    }
)

# Orientations that swap width and height
_TRANSPOSED_ORIENTATIONS = frozenset({5, 6, 7, 8})


def _filter_exif(exif: Image.Exif, keep: MetadataPreservation) -> Image.Exif:
    """Strip EXIF tags outside the selected groups, in place."""
    base_keep: set[int] = set()
    if keep.copyright:
        base_keep |= _COPYRIGHT_TAGS
    if keep.creator:
        base_keep |= _CREATOR_TAGS
    if keep.datetime:
        base_keep |= _DATETIME_TAGS
    if keep.camera:
        base_keep |= _CAMERA_TAGS

    if keep.camera or keep.datetime:
        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        if not keep.camera:
            for tag in [t for t in exif_ifd if t not in _EXIF_IFD_DATETIME_TAGS]:
                del exif_ifd[tag]
        elif not keep.datetime:
            for tag in [t for t in exif_ifd if t in _EXIF_IFD_DATETIME_TAGS]:
                del exif_ifd[tag]
        base_keep.add(ExifTags.IFD.Exif)

    if keep.gps:
        base_keep.add(ExifTags.IFD.GPSInfo)

    for tag in [t for t in exif if t not in base_keep]:
        del exif[tag]
    return exif


def _prepare_mode(image: Image.Image, fmt: str) -> Image.Image:
    """Convert the image to a mode the target encoder accepts."""
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )

    if fmt == "jpeg":
        if has_alpha:
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image if image.mode in ("RGB", "L") else image.convert("RGB")

    if fmt == "png":
        return image if image.mode in ("RGB", "RGBA", "L", "LA", "P") else image.convert("RGBA")

    # webp / avif
    if has_alpha:
        return image if image.mode == "RGBA" else image.convert("RGBA")
    return image if image.mode == "RGB" else image.convert("RGB")


def _apply_resize(image: Image.Image, resize: ResizeSpec) -> Image.Image:
    """Resize an image according to a ResizeSpec."""
    box = (resize.width, resize.height)

    if resize.fit == "cover":
        if resize.without_enlargement:
            # Crop to the target box but never scale up.
            box = (min(image.width, resize.width), min(image.height, resize.height))
            if box == image.size:
                return image
        return ImageOps.fit(image, box, Image.Resampling.LANCZOS)

    if resize.without_enlargement:
        if image.width <= resize.width and image.height <= resize.height:
            return image
        resized = image.copy()
        resized.thumbnail(box, Image.Resampling.LANCZOS)
        return resized

    return ImageOps.contain(image, box, Image.Resampling.LANCZOS)


class PillowImageProcessor(BaseImageProcessor):
    """Image processor built on Pillow.

    Args:
        preserve_metadata: False, True, or a selective MetadataPreservation.
    """

    name = "pillow"

    def __init__(self, preserve_metadata: bool | MetadataPreservation = False) -> None:
        self.preserve_metadata = preserve_metadata

    def is_available(self) -> bool:
        """Check that the Pillow build can encode WebP."""
        return "WEBP" in Image.SAVE

    async def process(self, input_path: Path, outputs: list[OutputSpec]) -> list[OutputResult]:
        """Produce every requested output for one input.

        Encoding runs in a worker thread so the event loop stays responsive.
        """
        return await asyncio.to_thread(self._process_sync, Path(input_path), outputs)

    async def read_dimensions(self, input_path: Path) -> ImageDimensions | None:
        """Read display dimensions, honoring EXIF orientation."""
        return await asyncio.to_thread(self._read_dimensions_sync, Path(input_path))

    def _read_dimensions_sync(self, input_path: Path) -> ImageDimensions | None:
        try:
            with Image.open(input_path) as img:
                width, height = img.size
                orientation = img.getexif().get(ExifTags.Base.Orientation)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.debug(f"Cannot read dimensions of {input_path}: {e}")
            return None

        if orientation in _TRANSPOSED_ORIENTATIONS:
            width, height = height, width
        return ImageDimensions(width=width, height=height)

    def _process_sync(self, input_path: Path, outputs: list[OutputSpec]) -> list[OutputResult]:
        decoded: tuple[Image.Image, bytes | None, bytes | None] | None = None
        decode_error: Exception | None = None

        if any(spec.format != "copy" for spec in outputs):
            try:
                decoded = self._decode(input_path)
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.debug(f"Cannot decode {input_path}: {e}")
                decode_error = e

        results: list[OutputResult] = []
        for spec in outputs:
            if spec.format == "copy":
                results.append(self._copy(input_path, spec))
            elif decoded is not None:
                results.append(self._encode(decoded[0], spec, decoded[1], decoded[2]))
            else:
                code = error_code(decode_error) if decode_error is not None else None
                if code is None and isinstance(
                    decode_error, (UnidentifiedImageError, Image.DecompressionBombError)
                ):
                    code = "EUNSUPPORTED"
                results.append(
                    OutputResult(
                        output_path=spec.output_path,
                        success=False,
                        error=str(decode_error),
                        code=code,
                    )
                )
        return results

    def _decode(self, input_path: Path) -> tuple[Image.Image, bytes | None, bytes | None]:
        with Image.open(input_path) as opened:
            opened.load()
            image = ImageOps.exif_transpose(opened)

        icc_profile = image.info.get("icc_profile")
        exif_bytes: bytes | None = None

        if self.preserve_metadata:
            exif = image.getexif()
            keep = self.preserve_metadata
            if isinstance(keep, MetadataPreservation) and not keep.all:
                exif = _filter_exif(exif, keep)
            if len(exif):
                exif_bytes = exif.tobytes()

        return image, exif_bytes, icc_profile

    def _encode(
        self,
        image: Image.Image,
        spec: OutputSpec,
        exif_bytes: bytes | None,
        icc_profile: bytes | None,
    ) -> OutputResult:
        try:
            prepared = image
            if spec.resize is not None:
                prepared = _apply_resize(prepared, spec.resize)
            prepared = _prepare_mode(prepared, spec.format)

            save_kwargs: dict[str, Any] = {}
            if spec.format in ("webp", "avif", "jpeg"):
                save_kwargs["quality"] = spec.quality if spec.quality is not None else 80
            if spec.format == "jpeg":
                save_kwargs["optimize"] = True
                save_kwargs["progressive"] = True
            if spec.format == "webp":
                save_kwargs["method"] = 4
            if spec.format == "png":
                save_kwargs["compress_level"] = (
                    spec.compression_level
                    if spec.compression_level is not None
                    else PNG_COMPRESSION_LEVEL
                )
            if exif_bytes and not spec.is_thumbnail:
                save_kwargs["exif"] = exif_bytes
            if icc_profile:
                save_kwargs["icc_profile"] = icc_profile

            with atomic_write(spec.output_path) as temp_path:
                prepared.save(temp_path, format=PIL_FORMATS[spec.format], **save_kwargs)

        except (OSError, ValueError, KeyError, AtomicWriteError) as e:
            cause = e.__cause__ if isinstance(e, AtomicWriteError) and e.__cause__ else e
            logger.debug(f"Encoding {spec.output_path} failed: {e}")
            return OutputResult(
                output_path=spec.output_path,
                success=False,
                error=str(cause),
                code=error_code(cause),
            )

        return OutputResult(
            output_path=spec.output_path,
            success=True,
            size=spec.output_path.stat().st_size,
        )

    def _copy(self, input_path: Path, spec: OutputSpec) -> OutputResult:
        try:
            with atomic_write(spec.output_path) as temp_path:
                shutil.copyfile(input_path, temp_path)
        except AtomicWriteError as e:
            cause = e.__cause__ or e
            return OutputResult(
                output_path=spec.output_path,
                success=False,
                error=str(cause),
                code=error_code(cause),
            )

        return OutputResult(
            output_path=spec.output_path,
            success=True,
            size=spec.output_path.stat().st_size,
        )


__all__ = [
    "PIL_FORMATS",
    "PillowImageProcessor",
]
