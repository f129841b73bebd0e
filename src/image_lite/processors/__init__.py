"""Processor modules for image-lite.

This package provides change detection and output planning.
"""

from image_lite.processors.output_paths import ProcessingConfigGenerator
from image_lite.processors.timestamp import (
    ChangeCheckResult,
    ProcessingDecision,
    TimestampChecker,
)

__all__ = [
    "ChangeCheckResult",
    "ProcessingConfigGenerator",
    "ProcessingDecision",
    "TimestampChecker",
]
