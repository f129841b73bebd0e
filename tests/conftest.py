"""Shared pytest fixtures for image_lite tests.

This module provides common fixtures used across all test modules,
including temporary project trees, small real images and a clean
configuration singleton.

Example:
    def test_with_project(project_dir, make_image):
        make_image(project_dir / "original" / "a.jpg")
        assert (project_dir / "original" / "a.jpg").exists()
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from PIL import Image

from image_lite.core.config import Config

if TYPE_CHECKING:
    from collections.abc import Generator

ImageFactory = Callable[..., Path]


@pytest.fixture(autouse=True)
def reset_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Reset the configuration singleton and disable file logging.

    Yields:
        None
    """
    monkeypatch.setenv("IMAGE_LITE_LOG__FILE_OUTPUT", "false")
    Config.reset()
    yield
    Config.reset()


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test files.

    Args:
        tmp_path: Pytest's built-in temporary path fixture.

    Returns:
        Path: Temporary directory path.
    """
    return tmp_path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Provide a project root with an empty ``original`` input directory.

    Returns:
        Path: Project root.
    """
    (tmp_path / "original").mkdir()
    return tmp_path


@pytest.fixture
def make_image() -> ImageFactory:
    """Provide a factory that writes small real images.

    The format is derived from the file extension.

    Returns:
        Callable taking ``path`` and optional ``size``, ``color`` and
        ``mode`` and returning the written path.
    """
    formats = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG", ".webp": "WEBP", ".gif": "GIF"}

    def factory(
        path: Path,
        size: tuple[int, int] = (64, 48),
        color: tuple[int, ...] = (200, 30, 30),
        mode: str = "RGB",
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        image = Image.new(mode, size, color)
        fmt = formats[path.suffix.lower()]
        if fmt == "GIF":
            image = image.convert("P")
        image.save(path, format=fmt)
        return path

    return factory


@pytest.fixture
def make_config() -> Callable[..., Config]:
    """Provide a factory for Config instances that ignore any config file.

    Returns:
        Callable accepting Config field overrides.
    """

    def factory(**overrides: object) -> Config:
        return Config(**overrides)

    return factory
