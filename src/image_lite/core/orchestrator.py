"""Orchestrator for batch image optimization.

The Orchestrator walks the input tree and drives every file through the
same state machine:

    Pending -> LfsCheck -> NeedsProcessingCheck -> Processing
            -> Succeeded | Skipped | Failed

    | Condition                                  | Terminal state          |
    |--------------------------------------------|-------------------------|
    | LFS pointer, auto-pull off                 | Skipped (lfs-pointer)   |
    | LFS pull fails or leaves a pointer         | Failed (lfs-error)      |
    | input missing                              | Failed (missing-input)  |
    | every output newer than the input          | Skipped (up-to-date)    |
    | codec wrote every output                   | Succeeded               |
    | codec failed after retries                 | Failed (processing)     |

Files are processed one at a time. The checkpoint is saved after every
``checkpoint_interval`` files. A run that ends without failures deletes the
checkpoint and the error log; otherwise both are kept for ``--resume``.

Example:
    >>> from image_lite.core.config import Config
    >>> from image_lite.core.orchestrator import Orchestrator
    >>>
    >>> orchestrator = Orchestrator(Config.load())
    >>> report = await orchestrator.run(resume=True)
    >>> print(f"Optimized: {report.succeeded}/{report.total_files}")
"""

from __future__ import annotations

import asyncio
import errno
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from image_lite.converters.base import BaseImageProcessor, raise_for_failures
from image_lite.converters.pillow import PillowImageProcessor
from image_lite.core.checkpoint import CheckpointStore, ProcessedLedger
from image_lite.core.config import Config
from image_lite.core.error_log import ErrorLog, describe_error
from image_lite.core.error_recovery import JobAbortedError, RecoveryCoordinator, RetryPolicy
from image_lite.core.quality_rules import QualityRuleResolutionEngine
from image_lite.core.types import (
    ExecutionResult,
    FailureKind,
    FileStatus,
    JobProgress,
    JobReport,
    JobState,
    ProcessedFileRecord,
    ProgressCallback,
    SkipReason,
)
from image_lite.extractors.folder_scanner import FolderNotFoundError, FolderScanner
from image_lite.extractors.lfs_handler import LfsHandler
from image_lite.processors.output_paths import ProcessingConfigGenerator
from image_lite.processors.timestamp import ProcessingDecision, TimestampChecker

logger = logging.getLogger(__name__)


class FatalJobError(Exception):
    """Raised when the job cannot run at all.

    Fatal errors abort the job regardless of continue-on-error.
    """


class Orchestrator:
    """Coordinates the image optimization job.

    Relative paths in the configuration (input and output directories,
    error log, checkpoint) are resolved against ``root``.

    Attributes:
        config: Job configuration.
        root: Project root.
        ledger: Outcomes recorded for the current job.
        error_log: Sink for terminal failures.
        checkpoint: Checkpoint persistence.
        coordinator: Retry and failure recording.
    """

    def __init__(
        self,
        config: Config,
        root: Path | None = None,
        processor: BaseImageProcessor | None = None,
        scanner: FolderScanner | None = None,
        lfs_handler: LfsHandler | None = None,
        timestamp_checker: TimestampChecker | None = None,
        error_log: ErrorLog | None = None,
        checkpoint: CheckpointStore | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        """Initialize the Orchestrator.

        Args:
            config: Job configuration.
            root: Project root. Defaults to the current directory.
            processor: Codec service. Defaults to Pillow.
            scanner: File enumerator for the input directory.
            lfs_handler: LFS pointer detection and retrieval.
            timestamp_checker: Needs-processing predicate.
            error_log: Error log. Defaults to the configured path.
            checkpoint: Checkpoint store. Defaults to the configured path.
            sleep: Coroutine used for retry backoff.
        """
        self.config = config
        self.root = Path(root) if root is not None else Path.cwd()
        recovery = config.error_recovery

        self.input_root = self._resolve(config.input_dir)
        self.output_root = self._resolve(config.output_dir)

        self.processor = processor or PillowImageProcessor(config.preserve_metadata)
        self.scanner = scanner or FolderScanner(self.input_root)
        self.lfs_handler = lfs_handler or LfsHandler(repo_root=self.root)
        self.timestamp_checker = timestamp_checker or TimestampChecker()
        self.error_log = error_log or ErrorLog(self._resolve(recovery.error_log))
        self.checkpoint = checkpoint or CheckpointStore(
            self._resolve(recovery.state_file), self.error_log
        )
        self.coordinator = RecoveryCoordinator(
            RetryPolicy.from_config(recovery),
            self.error_log,
            continue_on_error=recovery.continue_on_error,
            sleep=sleep,
        )
        self.engine = QualityRuleResolutionEngine(config.quality_rules)
        self.planner = ProcessingConfigGenerator(config, self.output_root)
        self.ledger = ProcessedLedger()

    def _resolve(self, path: Path) -> Path:
        path = Path(path).expanduser()
        return path if path.is_absolute() else self.root / path

    def _snapshot(self, force: bool) -> dict[str, Any]:
        """Settings stored alongside progress in the checkpoint."""
        recovery = self.config.error_recovery
        return {
            "inputDir": str(self.config.input_dir),
            "outputDir": str(self.config.output_dir),
            "formats": list(self.config.formats),
            "quality": dict(self.config.quality),
            "qualityRules": len(self.config.quality_rules),
            "generateThumbnails": self.planner.thumbnails_enabled,
            "forceReprocess": force,
            "continueOnError": recovery.continue_on_error,
            "maxRetries": recovery.max_retries,
            "retryDelay": recovery.retry_delay,
            "exponentialBackoff": recovery.exponential_backoff,
        }

    def _emit_progress(self, callback: ProgressCallback | None, progress: JobProgress) -> None:
        """Invoke the progress callback, logging instead of raising on error."""
        if callback is None:
            return
        try:
            callback(progress)
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")

    def discover(self) -> list[str]:
        """Enumerate input files.

        Raises:
            FatalJobError: If the input directory does not exist.
        """
        try:
            return self.scanner.scan()
        except FolderNotFoundError as e:
            raise FatalJobError(f"Input directory not found: {e.path}") from e

    def _prepare_output_root(self) -> None:
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalJobError(f"Cannot create output directory {self.output_root}: {e}") from e

    def _restore(self, state: JobState, files: list[str]) -> list[str]:
        """Restore the ledger from a checkpoint and return the remaining work.

        Completed paths (success or skipped) are skipped; failed ones are
        retried. Records for paths no longer in the input tree are dropped.
        """
        current = set(files)
        restored = [record for record in state.processed if record.path in current]

        if restored:
            for record in restored:
                self.ledger.record(record)
            remaining = [path for path in files if not self.ledger.is_completed(path)]
        elif state.progress.processed > 0:
            # Checkpoint without per-file records: fall back to the processed count
            count = min(state.progress.processed, len(files))
            for path in files[:count]:
                self.ledger.record(
                    ProcessedFileRecord(
                        path=path, status=FileStatus.SKIPPED, reason=SkipReason.RESUMED.value
                    )
                )
            remaining = files[count:]
        else:
            remaining = list(files)

        logger.info(
            f"Resuming: {len(files) - len(remaining)} of {len(files)} files already done"
        )
        return remaining

    def _save_checkpoint(self, files: list[str], force: bool) -> None:
        pending = [path for path in files if path not in self.ledger]
        self.checkpoint.save(self.ledger, len(files), pending, self._snapshot(force))

    async def run(
        self,
        force: bool = False,
        resume: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> JobReport:
        """Run the job over the whole input tree.

        Args:
            force: Reprocess files even when their outputs are up to date.
            resume: Continue from the checkpoint, if one is present.
            on_progress: Optional callback invoked after each file.

        Returns:
            JobReport for this run.

        Raises:
            FatalJobError: If the input tree cannot be read or the output
                directory cannot be created.
            JobAbortedError: If a file fails terminally and continue-on-error
                is off. The checkpoint is saved before the error propagates.
        """
        report = JobReport(started_at=datetime.now(), error_log_path=str(self.error_log.path))
        self.ledger = ProcessedLedger()

        files = self.discover()
        self._prepare_output_root()

        work = list(files)
        if resume:
            state = self.checkpoint.load()
            if state is not None:
                work = self._restore(state, files)
            else:
                logger.info("No usable checkpoint found, starting from the beginning")

        report.total_files = len(files)
        report.resumed_files = len(files) - len(work)
        interval = self.config.error_recovery.checkpoint_interval

        logger.info(f"Processing {len(work)} of {len(files)} images from {self.input_root}")

        for index, rel_path in enumerate(work, start=1):
            try:
                record = await self.process_file(rel_path, force=force)
            except JobAbortedError:
                aborted = self.ledger.get(rel_path)
                if aborted is not None:
                    report.add_record(aborted)
                self._save_checkpoint(files, force)
                report.completed_at = datetime.now()
                raise
            except Exception:
                self._save_checkpoint(files, force)
                raise

            report.add_record(record)
            self._emit_progress(
                on_progress,
                JobProgress(
                    current_file=rel_path,
                    current_index=index,
                    total_files=len(work),
                    status=record.status,
                ),
            )

            if index % interval == 0:
                self._save_checkpoint(files, force)

        if self.ledger.failures:
            self._save_checkpoint(files, force)
            logger.warning(
                f"{len(self.ledger.failures)} file(s) failed; "
                f"see {self.error_log.path} and rerun with --resume"
            )
        else:
            self.checkpoint.clear(self.ledger)

        report.completed_at = datetime.now()
        return report

    async def process_file(self, rel_path: str, force: bool = False) -> ProcessedFileRecord:
        """Drive one file through the per-file state machine.

        The resulting record is stored in the ledger.

        Args:
            rel_path: Path relative to the input root, forward slashes.
            force: Reprocess even if outputs are up to date.

        Returns:
            The file's ProcessedFileRecord.

        Raises:
            JobAbortedError: On terminal failure without continue-on-error.
                The failed record is stored in the ledger first.
        """
        record = await self._process(rel_path, force)
        self.ledger.record(record)
        return record

    async def _process(self, rel_path: str, force: bool) -> ProcessedFileRecord:
        input_path = self.input_root / rel_path

        if self.lfs_handler.is_pointer(input_path):
            if not self.config.lfs.auto_pull:
                logger.warning(f"Skipping Git LFS pointer {rel_path} (enable LFS auto-pull to fetch)")
                return ProcessedFileRecord(
                    path=rel_path, status=FileStatus.SKIPPED, reason=SkipReason.LFS_POINTER.value
                )

            outcome = await self._execute(
                rel_path,
                FailureKind.LFS_ERROR,
                lambda: self.lfs_handler.fetch(input_path),
                "lfs-pull",
            )
            if not outcome.success:
                return self._failure_record(rel_path, outcome, FailureKind.LFS_ERROR)

        check = self.timestamp_checker.needs_processing(
            input_path, self.planner.output_paths(rel_path), force=force
        )

        if check.decision is ProcessingDecision.MISSING_INPUT:
            error = FileNotFoundError(errno.ENOENT, "Input file not found", str(input_path))
            try:
                outcome = self.coordinator.fail({"file": rel_path, "operation": "check"}, error)
            except JobAbortedError as e:
                self._record_abort(rel_path, e, FailureKind.MISSING_INPUT)
                raise
            return self._failure_record(rel_path, outcome, FailureKind.MISSING_INPUT)

        if check.decision is ProcessingDecision.UP_TO_DATE:
            logger.debug(f"Up to date: {rel_path}")
            return ProcessedFileRecord(
                path=rel_path, status=FileStatus.SKIPPED, reason=SkipReason.UP_TO_DATE.value
            )

        async def convert() -> list[Path]:
            dimensions = None
            if self.engine.needs_dimensions and not self.planner.is_passthrough(rel_path):
                dimensions = await self.processor.read_dimensions(input_path)

            quality = self.engine.resolve(rel_path, self.config.quality, dimensions)
            specs = self.planner.plan(rel_path, quality)
            results = await self.processor.process(input_path, specs)
            return raise_for_failures(input_path, results)

        outcome = await self._execute(rel_path, FailureKind.PROCESSING, convert, "process")
        if not outcome.success:
            return self._failure_record(rel_path, outcome, FailureKind.PROCESSING)

        logger.info(f"Optimized {rel_path} ({len(outcome.result)} outputs)")
        return ProcessedFileRecord(
            path=rel_path,
            status=FileStatus.SUCCESS,
            attempts=outcome.attempts,
            outputs=[self._display_path(path) for path in outcome.result],
        )

    async def _execute(
        self,
        rel_path: str,
        kind: FailureKind,
        operation: Callable[[], Any],
        operation_name: str,
    ) -> ExecutionResult:
        """Run an operation under the coordinator, recording aborts in the ledger."""
        try:
            return await self.coordinator.execute(
                operation, {"file": rel_path, "operation": operation_name}
            )
        except JobAbortedError as e:
            self._record_abort(rel_path, e, kind)
            raise

    def _record_abort(self, rel_path: str, error: JobAbortedError, kind: FailureKind) -> None:
        outcome = ExecutionResult(success=False, error=error.error, attempts=error.attempts)
        self.ledger.record(self._failure_record(rel_path, outcome, kind))

    @staticmethod
    def _failure_record(
        rel_path: str,
        outcome: ExecutionResult,
        kind: FailureKind,
    ) -> ProcessedFileRecord:
        return ProcessedFileRecord(
            path=rel_path,
            status=FileStatus.FAILED,
            attempts=max(1, outcome.attempts),
            error=describe_error(outcome.error) if outcome.error is not None else None,
            reason=kind.value,
        )

    def _display_path(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def run_sync(
        self,
        force: bool = False,
        resume: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> JobReport:
        """Synchronous wrapper for run."""
        return asyncio.run(self.run(force=force, resume=resume, on_progress=on_progress))


__all__ = [
    "FatalJobError",
    "Orchestrator",
]
