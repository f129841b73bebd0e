"""Unit tests for the Pillow image processor."""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from image_lite.converters.base import (
    ImageProcessingError,
    OutputResult,
    OutputSpec,
    ResizeSpec,
    raise_for_failures,
)
from image_lite.converters.pillow import PillowImageProcessor
from image_lite.core.config import MetadataPreservation
from image_lite.core.types import ImageDimensions


class TestReadDimensions:
    """Tests for dimension reading."""

    @pytest.mark.asyncio
    async def test_reads_size(self, tmp_path: Path, make_image) -> None:
        """Test that width and height are read."""
        path = make_image(tmp_path / "a.png", size=(120, 80))
        assert await PillowImageProcessor().read_dimensions(path) == ImageDimensions(120, 80)

    @pytest.mark.asyncio
    async def test_unreadable_returns_none(self, tmp_path: Path) -> None:
        """Test that a non-image yields None."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not an image")
        assert await PillowImageProcessor().read_dimensions(path) is None

    @pytest.mark.asyncio
    async def test_oversized_image_returns_none(
        self, tmp_path: Path, make_image, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that an image over the pixel limit yields None."""
        path = make_image(tmp_path / "huge.png")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        assert await PillowImageProcessor().read_dimensions(path) is None

    @pytest.mark.asyncio
    async def test_exif_rotation_swaps_dimensions(self, tmp_path: Path) -> None:
        """Test that a rotated orientation reports display dimensions."""
        path = tmp_path / "rotated.jpg"
        exif = Image.Exif()
        exif[0x0112] = 6
        Image.new("RGB", (100, 50)).save(path, format="JPEG", exif=exif.tobytes())

        assert await PillowImageProcessor().read_dimensions(path) == ImageDimensions(50, 100)


class TestProcess:
    """Tests for encoding outputs."""

    @pytest.mark.asyncio
    async def test_encodes_webp_jpeg_png(self, tmp_path: Path, make_image) -> None:
        """Test that each requested format is written."""
        source = make_image(tmp_path / "in" / "a.jpg")
        out = tmp_path / "out"
        specs = [
            OutputSpec(output_path=out / "a.webp", format="webp", quality=80),
            OutputSpec(output_path=out / "a.jpg", format="jpeg", quality=70),
            OutputSpec(output_path=out / "a.png", format="png", compression_level=9),
        ]

        results = await PillowImageProcessor().process(source, specs)

        assert all(r.success for r in results)
        assert [r.output_path for r in results] == [s.output_path for s in specs]
        for spec, expected in zip(specs, ("WEBP", "JPEG", "PNG")):
            with Image.open(spec.output_path) as img:
                assert img.format == expected
        assert all(r.size > 0 for r in results)

    @pytest.mark.asyncio
    async def test_resize_inside_never_enlarges(self, tmp_path: Path, make_image) -> None:
        """Test the inside fit with and without a smaller source."""
        source = make_image(tmp_path / "a.png", size=(400, 200))
        specs = [
            OutputSpec(
                output_path=tmp_path / "small.webp",
                format="webp",
                resize=ResizeSpec(width=100, height=100),
            ),
            OutputSpec(
                output_path=tmp_path / "large.webp",
                format="webp",
                resize=ResizeSpec(width=1000, height=1000),
            ),
        ]

        await PillowImageProcessor().process(source, specs)

        with Image.open(tmp_path / "small.webp") as img:
            assert img.size == (100, 50)
        with Image.open(tmp_path / "large.webp") as img:
            assert img.size == (400, 200)

    @pytest.mark.asyncio
    async def test_thumbnail_cover_crop(self, tmp_path: Path, make_image) -> None:
        """Test that thumbnails are cropped to a square."""
        source = make_image(tmp_path / "a.jpg", size=(300, 150))
        spec = OutputSpec(
            output_path=tmp_path / "a-thumb.webp",
            format="webp",
            quality=70,
            resize=ResizeSpec(width=50, height=50, fit="cover", without_enlargement=False),
            is_thumbnail=True,
        )

        await PillowImageProcessor().process(source, [spec])

        with Image.open(spec.output_path) as img:
            assert img.size == (50, 50)

    @pytest.mark.asyncio
    async def test_thumbnail_never_upscales(self, tmp_path: Path, make_image) -> None:
        """Test that a source smaller than the thumbnail box keeps its size."""
        source = make_image(tmp_path / "a.png", size=(120, 80))
        spec = OutputSpec(
            output_path=tmp_path / "a-thumb.webp",
            format="webp",
            quality=70,
            resize=ResizeSpec(width=200, height=200, fit="cover", without_enlargement=True),
            is_thumbnail=True,
        )

        await PillowImageProcessor().process(source, [spec])

        with Image.open(spec.output_path) as img:
            assert img.size == (120, 80)

    @pytest.mark.asyncio
    async def test_thumbnail_crops_without_upscaling(self, tmp_path: Path, make_image) -> None:
        """Test that only the oversized side is cropped to the thumbnail box."""
        source = make_image(tmp_path / "a.jpg", size=(300, 150))
        spec = OutputSpec(
            output_path=tmp_path / "a-thumb.webp",
            format="webp",
            quality=70,
            resize=ResizeSpec(width=200, height=200, fit="cover", without_enlargement=True),
            is_thumbnail=True,
        )

        await PillowImageProcessor().process(source, [spec])

        with Image.open(spec.output_path) as img:
            assert img.size == (200, 150)

    @pytest.mark.asyncio
    async def test_alpha_flattened_for_jpeg(self, tmp_path: Path, make_image) -> None:
        """Test that transparent sources can be written as JPEG."""
        source = make_image(tmp_path / "a.png", color=(10, 20, 30, 0), mode="RGBA")
        spec = OutputSpec(output_path=tmp_path / "a.jpg", format="jpeg", quality=80)

        (result,) = await PillowImageProcessor().process(source, [spec])

        assert result.success
        with Image.open(spec.output_path) as img:
            assert img.mode == "RGB"

    @pytest.mark.asyncio
    async def test_copy_is_byte_identical(self, tmp_path: Path, make_image) -> None:
        """Test passthrough copies."""
        source = make_image(tmp_path / "a.gif")
        spec = OutputSpec(output_path=tmp_path / "out" / "a.gif", format="copy")

        (result,) = await PillowImageProcessor().process(source, [spec])

        assert result.success
        assert spec.output_path.read_bytes() == source.read_bytes()

    @pytest.mark.asyncio
    async def test_corrupt_input_fails_every_output(self, tmp_path: Path) -> None:
        """Test that a decode failure is reported per output."""
        source = tmp_path / "broken.jpg"
        source.write_bytes(b"garbage")
        specs = [
            OutputSpec(output_path=tmp_path / "a.webp", format="webp"),
            OutputSpec(output_path=tmp_path / "a.jpg", format="jpeg"),
        ]

        results = await PillowImageProcessor().process(source, specs)

        assert not any(r.success for r in results)
        assert all(r.code == "EUNSUPPORTED" for r in results)
        assert not (tmp_path / "a.webp").exists()

    @pytest.mark.asyncio
    async def test_missing_input_reports_enoent(self, tmp_path: Path) -> None:
        """Test that a vanished input carries ENOENT."""
        spec = OutputSpec(output_path=tmp_path / "a.webp", format="webp")

        (result,) = await PillowImageProcessor().process(tmp_path / "gone.jpg", [spec])

        assert not result.success
        assert result.code == "ENOENT"

    @pytest.mark.asyncio
    async def test_oversized_input_fails_as_unsupported(
        self, tmp_path: Path, make_image, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that an image over the pixel limit is a permanent failure."""
        source = make_image(tmp_path / "huge.png")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        spec = OutputSpec(output_path=tmp_path / "huge.webp", format="webp")

        (result,) = await PillowImageProcessor().process(source, [spec])

        assert not result.success
        assert result.code == "EUNSUPPORTED"

    @pytest.mark.asyncio
    async def test_metadata_stripped_by_default(self, tmp_path: Path) -> None:
        """Test that EXIF is dropped unless preservation is on."""
        source = tmp_path / "a.jpg"
        exif = Image.Exif()
        exif[0x8298] = "ACME"
        Image.new("RGB", (20, 20)).save(source, format="JPEG", exif=exif.tobytes())
        spec = OutputSpec(output_path=tmp_path / "out.jpg", format="jpeg")

        await PillowImageProcessor().process(source, [spec])
        with Image.open(spec.output_path) as img:
            assert 0x8298 not in img.getexif()

        await PillowImageProcessor(MetadataPreservation(copyright=True)).process(source, [spec])
        with Image.open(spec.output_path) as img:
            assert img.getexif().get(0x8298) == "ACME"


class TestRaiseForFailures:
    """Tests for raise_for_failures."""

    def test_all_success_returns_paths(self, tmp_path: Path) -> None:
        """Test the success path."""
        results = [OutputResult(output_path=tmp_path / "a.webp", success=True)]
        assert raise_for_failures(tmp_path / "a.jpg", results) == [tmp_path / "a.webp"]

    def test_failure_carries_first_code(self, tmp_path: Path) -> None:
        """Test that the first failing code is propagated."""
        results = [
            OutputResult(output_path=tmp_path / "a.webp", success=True),
            OutputResult(output_path=tmp_path / "a.avif", success=False, error="busy", code="EBUSY"),
            OutputResult(output_path=tmp_path / "a.jpg", success=False, error="bad", code="EIO"),
        ]

        with pytest.raises(ImageProcessingError) as exc_info:
            raise_for_failures(tmp_path / "a.jpg", results)

        assert exc_info.value.code == "EBUSY"
        assert "2 of 3" in str(exc_info.value)
