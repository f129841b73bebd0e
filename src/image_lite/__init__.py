"""Image Lite - Resumable batch image optimization."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("image-lite")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"

__author__ = "Image Lite Team"
