"""Core module for the image optimization job.

This module provides configuration, the quality rule engine and the error
recovery layer shared by the job loop.

Note:
    To avoid circular imports, Orchestrator and ImageWatcher are imported separately:
    >>> from image_lite.core.orchestrator import Orchestrator
    >>> from image_lite.core.watcher import ImageWatcher
"""

from image_lite.core.checkpoint import CheckpointStore, ProcessedLedger
from image_lite.core.config import (
    Config,
    ConfigurationError,
    ErrorRecoveryConfig,
    MetadataPreservation,
    QualityRule,
)
from image_lite.core.error_log import ErrorLog, ErrorLogEntry
from image_lite.core.error_recovery import JobAbortedError, RecoveryCoordinator, RetryPolicy
from image_lite.core.quality_rules import QualityRuleResolutionEngine, ResolutionExplanation
from image_lite.core.types import (
    FileStatus,
    ImageDimensions,
    JobReport,
    JobState,
    ProcessedFileRecord,
)

__all__ = [
    "CheckpointStore",
    "Config",
    "ConfigurationError",
    "ErrorLog",
    "ErrorLogEntry",
    "ErrorRecoveryConfig",
    "FileStatus",
    "ImageDimensions",
    "JobAbortedError",
    "JobReport",
    "JobState",
    "MetadataPreservation",
    "ProcessedFileRecord",
    "ProcessedLedger",
    "QualityRule",
    "QualityRuleResolutionEngine",
    "RecoveryCoordinator",
    "ResolutionExplanation",
    "RetryPolicy",
]
