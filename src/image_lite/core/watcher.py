"""Watch mode: reprocess images as they change.

The watcher polls the input tree, compares modification times against the
previous snapshot and sends every new or modified file through the
orchestrator's per-file pipeline with ``force=True``. A change is only
acted on once the file's modification time has stayed the same for
``settle_time`` seconds, so files still being written are picked up on a
later cycle.

Failures never stop the watcher; they are recorded in the error log like
any other failure and the file is retried when it changes again.

Example:
    >>> watcher = ImageWatcher(orchestrator, poll_interval=1.0, settle_time=0.5)
    >>> await watcher.watch()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from image_lite.core.error_recovery import JobAbortedError
from image_lite.core.orchestrator import Orchestrator
from image_lite.core.types import ProcessedFileRecord
from image_lite.extractors.folder_scanner import FolderNotFoundError
from image_lite.utils.constants import DEFAULT_POLL_INTERVAL, DEFAULT_SETTLE_TIME

logger = logging.getLogger(__name__)

Snapshot = dict[str, float]


class ImageWatcher:
    """Polling watcher that feeds changed inputs to an Orchestrator.

    Args:
        orchestrator: Orchestrator whose per-file pipeline is reused.
        poll_interval: Seconds between scans.
        settle_time: Seconds a change must stay stable before processing.
        sleep: Coroutine used for waiting (seconds).
        on_record: Optional callback invoked with each file's record.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        settle_time: float = DEFAULT_SETTLE_TIME,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        on_record: Callable[[ProcessedFileRecord], None] | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.poll_interval = poll_interval
        self.settle_time = settle_time
        self.on_record = on_record
        self._sleep = sleep or asyncio.sleep

    def snapshot(self) -> Snapshot:
        """Map every input file to its modification time.

        Files that vanish during the scan are left out. A missing input
        directory yields an empty snapshot.
        """
        try:
            files = self.orchestrator.scanner.scan()
        except FolderNotFoundError as e:
            logger.warning(f"Input directory not found: {e.path}")
            return {}

        checker = self.orchestrator.timestamp_checker
        snapshot: Snapshot = {}
        for rel_path in files:
            mtime = checker.mod_time(self.orchestrator.input_root / rel_path)
            if mtime is not None:
                snapshot[rel_path] = mtime
        return snapshot

    @staticmethod
    def changed(previous: Snapshot, current: Snapshot) -> list[str]:
        """Paths that are new or have a different modification time."""
        return sorted(path for path, mtime in current.items() if previous.get(path) != mtime)

    async def poll_once(self, previous: Snapshot) -> tuple[Snapshot, list[ProcessedFileRecord]]:
        """Run one watch cycle.

        Args:
            previous: Snapshot from the previous cycle.

        Returns:
            The new baseline snapshot and the records of processed files.
            Files still changing keep their previous baseline entry so they
            are seen again next cycle.
        """
        current = self.snapshot()
        changed = self.changed(previous, current)
        if not changed:
            return current, []

        if self.settle_time > 0:
            await self._sleep(self.settle_time)
            settled = self.snapshot()
        else:
            settled = current

        baseline = dict(current)
        records: list[ProcessedFileRecord] = []

        for rel_path in changed:
            if settled.get(rel_path) != current[rel_path]:
                logger.debug(f"Still changing, deferring: {rel_path}")
                if rel_path in previous:
                    baseline[rel_path] = previous[rel_path]
                else:
                    baseline.pop(rel_path, None)
                continue

            logger.info(f"Change detected: {rel_path}")
            try:
                record = await self.orchestrator.process_file(rel_path, force=True)
            except JobAbortedError as e:
                logger.error(f"Watch: {e}")
                record = self.orchestrator.ledger.get(rel_path)
                if record is None:
                    continue

            records.append(record)
            if self.on_record is not None:
                try:
                    self.on_record(record)
                except Exception as e:
                    logger.warning(f"Watch callback error: {e}")

        return baseline, records

    async def watch(self, max_cycles: int | None = None) -> int:
        """Watch the input tree until cancelled.

        The current state of the tree is taken as the starting baseline;
        run a batch job first to bring existing files up to date.

        Args:
            max_cycles: Stop after this many polls. None watches forever.

        Returns:
            Number of file records produced.
        """
        baseline = self.snapshot()
        logger.info(
            f"Watching {self.orchestrator.input_root} ({len(baseline)} images, "
            f"poll every {self.poll_interval}s)"
        )

        processed = 0
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            await self._sleep(self.poll_interval)
            baseline, records = await self.poll_once(baseline)
            processed += len(records)
            cycles += 1

        return processed


__all__ = ["ImageWatcher"]
