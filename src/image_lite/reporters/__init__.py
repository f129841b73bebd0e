"""Reporter modules for image-lite.

This package provides reporters for generating formatted output
of optimization results.
"""

from image_lite.reporters.batch_reporter import BatchReporter

__all__ = ["BatchReporter"]
