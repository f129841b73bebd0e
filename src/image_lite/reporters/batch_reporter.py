"""Batch reporter for end-of-job summaries.

This module formats a JobReport for the terminal, for a report file, or
as a dictionary for JSON export.

Example:
    >>> from image_lite.reporters.batch_reporter import BatchReporter
    >>>
    >>> reporter = BatchReporter()
    >>> print(reporter.format_summary(report))
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, TextIO

from image_lite.core.types import FileStatus, JobReport

# Limits for the errors section of the summary
MAX_LISTED_FAILURES = 10


def _format_duration(seconds: float) -> str:
    """Format duration as human-readable string.

    Args:
        seconds: Duration in seconds.

    Returns:
        Human-readable duration string (e.g., "1h 23m").
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"


class BatchReporter:
    """Reporter for optimization job results.

    Generates summary statistics, per-file results and failure details.
    """

    def format_summary(self, report: JobReport) -> str:
        """Format a summary of the job.

        Args:
            report: Job report to format.

        Returns:
            Formatted summary string.
        """
        lines = []
        lines.append("=" * 50)
        lines.append("       Image Optimization Report")
        lines.append("=" * 50)
        lines.append("")

        lines.append(f"Started:      {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
        if report.completed_at:
            lines.append(f"Completed:    {report.completed_at.strftime('%Y-%m-%d %H:%M:%S')}")
            lines.append(f"Duration:     {_format_duration(report.duration_seconds)}")

        lines.append("")
        lines.append("-" * 50)
        lines.append("                 Summary")
        lines.append("-" * 50)

        lines.append(f"Total files:      {report.total_files}")
        if report.resumed_files:
            lines.append(f"Resumed:          {report.resumed_files}")
        lines.append(f"Optimized:        {report.succeeded}")
        lines.append(f"Up to date:       {report.skipped}")
        lines.append(f"Failed:           {report.failed}")
        if report.lfs_pointers:
            lines.append(f"LFS pointers:     {report.lfs_pointers}")
        if report.lfs_errors:
            lines.append(f"LFS errors:       {report.lfs_errors}")

        if report.failed == 0:
            lines.append("Status:           SUCCESS")
        elif report.succeeded > 0 or report.skipped > 0:
            lines.append("Status:           PARTIAL SUCCESS")
        else:
            lines.append("Status:           FAILED")

        failures = [r for r in report.records if r.status is FileStatus.FAILED]
        if failures:
            lines.append("")
            lines.append("-" * 50)
            lines.append("                 Errors")
            lines.append("-" * 50)
            for record in failures[:MAX_LISTED_FAILURES]:
                message = record.error.message if record.error else record.reason
                lines.append(f"  - {record.path}: {message}")
            if len(failures) > MAX_LISTED_FAILURES:
                lines.append(f"  ... and {len(failures) - MAX_LISTED_FAILURES} more errors")
            if report.error_log_path:
                lines.append("")
                lines.append(f"Error log:        {report.error_log_path}")
                lines.append("Rerun with --resume to retry failed files.")

        lines.append("")
        lines.append("=" * 50)

        return "\n".join(lines)

    def format_details(self, report: JobReport) -> str:
        """Format detailed results for each file.

        Args:
            report: Job report to format.

        Returns:
            Formatted details string.
        """
        labels = {FileStatus.SUCCESS: "OK", FileStatus.SKIPPED: "SKIP", FileStatus.FAILED: "FAILED"}

        lines = []
        lines.append("-" * 60)
        lines.append("                  File Details")
        lines.append("-" * 60)

        for i, record in enumerate(report.records, 1):
            lines.append(f"[{i:3d}] {labels[record.status]:6s} {record.path}")

            if record.status is FileStatus.SUCCESS:
                for output in record.outputs:
                    lines.append(f"      -> {output}")
                if record.attempts > 1:
                    lines.append(f"      (after {record.attempts} attempts)")
            elif record.status is FileStatus.SKIPPED:
                lines.append(f"      {record.reason}")
            else:
                message = record.error.message if record.error else "unknown error"
                lines.append(f"      Error: {message}")

        lines.append("-" * 60)

        return "\n".join(lines)

    def write_report(
        self,
        report: JobReport,
        output_path: Path,
        include_details: bool = True,
    ) -> None:
        """Write report to a file.

        Args:
            report: Job report to write.
            output_path: Path for the report file.
            include_details: Whether to include per-file details.
        """
        content = self.format_summary(report)
        if include_details and report.records:
            content += "\n" + self.format_details(report)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as f:
            f.write(content)

    def print_report(
        self,
        report: JobReport,
        stream: TextIO | None = None,
        include_details: bool = False,
    ) -> None:
        """Print report to stdout or a stream.

        Args:
            report: Job report to print.
            stream: Output stream. Uses stdout if None.
            include_details: Whether to include per-file details.
        """
        output = stream or sys.stdout

        output.write(self.format_summary(report))
        output.write("\n")

        if include_details and report.records:
            output.write(self.format_details(report))
            output.write("\n")

    def to_dict(self, report: JobReport) -> dict[str, Any]:
        """Convert report to dictionary for JSON export.

        Args:
            report: Job report to convert.

        Returns:
            Dictionary representation of the report.
        """
        return {
            "started_at": report.started_at.isoformat(),
            "completed_at": report.completed_at.isoformat() if report.completed_at else None,
            "duration_seconds": report.duration_seconds if report.completed_at else None,
            "total_files": report.total_files,
            "resumed_files": report.resumed_files,
            "succeeded": report.succeeded,
            "skipped": report.skipped,
            "failed": report.failed,
            "lfs_pointers": report.lfs_pointers,
            "lfs_errors": report.lfs_errors,
            "error_log": report.error_log_path,
            "results": [record.to_dict() for record in report.records],
        }


__all__ = ["BatchReporter"]
