"""Modification-time based change detection.

An input needs processing when any of its outputs is missing or older than
the input itself. A missing input is reported separately so the caller can
record it as a failure instead of processing nothing.

Example:
    >>> from image_lite.processors.timestamp import TimestampChecker
    >>> checker = TimestampChecker()
    >>> decision = checker.needs_processing(
    ...     Path("original/a.jpg"),
    ...     [Path("optimized/a.webp"), Path("optimized/a.avif")],
    ... )
    >>> decision.should_process
    True
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessingDecision(Enum):
    """Outcome of the needs-processing check.

    Attributes:
        PROCESS: At least one output is missing or stale, or force is set.
        UP_TO_DATE: Every output is newer than the input.
        MISSING_INPUT: The input file does not exist.
    """

    PROCESS = "process"
    UP_TO_DATE = "up_to_date"
    MISSING_INPUT = "missing_input"


@dataclass
class ChangeCheckResult:
    """Result of comparing an input against its outputs.

    Attributes:
        decision: What the caller should do.
        stale_outputs: Outputs that are missing or older than the input.
    """

    decision: ProcessingDecision
    stale_outputs: list[Path] = field(default_factory=list)

    @property
    def should_process(self) -> bool:
        """Whether the input must be processed."""
        return self.decision is ProcessingDecision.PROCESS


class TimestampChecker:
    """Timestamp oracle and needs-processing predicate."""

    @staticmethod
    def mod_time(path: Path) -> float | None:
        """Get a file's modification time.

        Returns:
            Modification time in seconds since the epoch, or None if the
            file does not exist.
        """
        try:
            return path.stat().st_mtime
        except FileNotFoundError:
            return None

    def needs_processing(
        self,
        input_path: Path,
        output_paths: Sequence[Path],
        force: bool = False,
    ) -> ChangeCheckResult:
        """Decide whether an input must be (re)processed.

        Args:
            input_path: Source file.
            output_paths: Every output the source should produce.
            force: Always process an existing input.

        Returns:
            ChangeCheckResult describing the decision.
        """
        input_time = self.mod_time(input_path)
        if input_time is None:
            logger.debug(f"Input missing: {input_path}")
            return ChangeCheckResult(decision=ProcessingDecision.MISSING_INPUT)

        if force:
            return ChangeCheckResult(
                decision=ProcessingDecision.PROCESS, stale_outputs=list(output_paths)
            )

        stale: list[Path] = []
        for output in output_paths:
            output_time = self.mod_time(output)
            if output_time is None or output_time < input_time:
                stale.append(output)

        if stale:
            return ChangeCheckResult(decision=ProcessingDecision.PROCESS, stale_outputs=stale)
        return ChangeCheckResult(decision=ProcessingDecision.UP_TO_DATE)


__all__ = [
    "ChangeCheckResult",
    "ProcessingDecision",
    "TimestampChecker",
]
