"""
Snapshot lifecycle manager.

The SnapshotManager tracks expiring snapshots and evicts them once their
expiration instant has passed. It:
1. Loads the current snapshots on start and indexes the expiring ones
2. Accepts new snapshots from the snapshot creation path at any time
3. Runs a periodic cleanup task that deletes every snapshot that is due

Thread-safety:
    - One re-entrant lock guards the index and the cleanup task handle
    - A cleanup run holds the lock for its whole batch, so add_snapshot()
      calls made meanwhile wait for the batch to finish
    - stop() cancels future runs; it does not interrupt a run in progress

Invariants:
    - Snapshots without an expiration instant are never indexed or deleted
    - Snapshots are deleted in non-decreasing expiration order
    - A snapshot whose deletion fails still leaves the index; it is not
      retried and the failure is logged and reported

How to change safely:
    - Anything that reads or writes the index must hold self._lock
    - Keep directory removal rate-limited; eviction runs beside live traffic
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

from .cleanup.deletion import remove_snapshot_directory
from .cleanup.expiration_index import ExpirationIndex
from .cleanup.rate_limiter import RateLimiter
from .cleanup.scheduler import CleanupExecutor, ScheduledTask, get_cleanup_executor
from .errors import SnapshotDeletionError, SnapshotLoadError
from .snapshot.table_snapshot import TableSnapshot

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], Iterable[TableSnapshot]]
DirectoryRemover = Callable[[RateLimiter | None, Path], object]

DEFAULT_INITIAL_DELAY_SECONDS = 5
DEFAULT_CLEANUP_PERIOD_SECONDS = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CleanupReport:
    """Outcome of one cleanup run.

    Attributes:
        now: Instant the run compared expiration against
        cleared: Snapshots deleted and removed from the index
        failures: Snapshots removed from the index whose deletion failed
    """

    now: datetime
    cleared: list[TableSnapshot] = field(default_factory=list)
    failures: list[SnapshotDeletionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class SnapshotManager:
    """Tracks expiring snapshots and deletes them when they expire.

    Attributes:
        initial_delay_seconds: Delay before the first cleanup run
        cleanup_period_seconds: Interval between cleanup runs

    Example:
        >>> manager = SnapshotManager(SnapshotLoader(data_dirs).load_snapshots)
        >>> manager.start()
        >>> manager.add_snapshot(new_snapshot)
        >>> manager.stop()
    """

    def __init__(
        self,
        snapshot_loader: SnapshotSource,
        initial_delay_seconds: float = DEFAULT_INITIAL_DELAY_SECONDS,
        cleanup_period_seconds: float = DEFAULT_CLEANUP_PERIOD_SECONDS,
        executor: CleanupExecutor | None = None,
        rate_limiter: RateLimiter | None = None,
        remove_directory: DirectoryRemover = remove_snapshot_directory,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the manager.

        Args:
            snapshot_loader: Returns every snapshot currently on disk
            initial_delay_seconds: Delay before the first cleanup run
            cleanup_period_seconds: Interval between cleanup runs
            executor: Periodic task executor (defaults to the shared one)
            rate_limiter: Limiter shared by all snapshot deletions
            remove_directory: Rate-limited recursive directory removal
            clock: Returns the current time as an aware UTC datetime
        """
        self.initial_delay_seconds = initial_delay_seconds
        self.cleanup_period_seconds = cleanup_period_seconds
        self._snapshot_loader = snapshot_loader
        self._executor = executor
        self._rate_limiter = rate_limiter
        self._remove_directory = remove_directory
        self._clock = clock

        self._lock = threading.RLock()
        self._index = ExpirationIndex()
        self._cleanup_task: ScheduledTask | None = None
        self._cleared_count = 0
        self._failed_count = 0

    @property
    def executor(self) -> CleanupExecutor:
        if self._executor is None:
            self._executor = get_cleanup_executor()
        return self._executor

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._cleanup_task is not None

    def get_expiring_snapshots(self) -> tuple[TableSnapshot, ...]:
        """Currently tracked expiring snapshots, earliest expiration first."""
        with self._lock:
            return self._index.snapshots()

    def start(self) -> None:
        """Load current snapshots and start the periodic cleanup."""
        with self._lock:
            self.load_snapshots()
            self._resume_snapshot_cleanup()

    def stop(self) -> None:
        """Forget tracked snapshots and cancel future cleanup runs."""
        with self._lock:
            self._index.clear()
            if self._cleanup_task is not None:
                self._cleanup_task.cancel()
                self._cleanup_task = None
                logger.info("Stopped expired snapshot cleanup")

    def shutdown_and_wait(self, timeout_seconds: float) -> None:
        """Stop, then shut the executor down and wait for the in-flight run.

        Raises:
            ShutdownTimeoutError: If the cleanup run does not finish in time
        """
        self.stop()
        self.executor.shutdown_and_wait(timeout_seconds)

    def add_snapshot(self, snapshot: TableSnapshot) -> bool:
        """Track a snapshot for expiration.

        Snapshots without an expiration instant are ignored.

        Returns:
            True if the snapshot is now tracked
        """
        with self._lock:
            if not self._index.insert(snapshot):
                return False
        logger.debug(
            f"Adding expiring snapshot {snapshot}",
            extra={"snapshot_id": snapshot.snapshot_id, "expires_at": str(snapshot.expires_at)},
        )
        return True

    def load_snapshots(self) -> int:
        """Index every expiring snapshot returned by the snapshot loader.

        A partial load (some data directories failed) is logged and the
        snapshots from the other data directories are still indexed.

        Returns:
            Number of snapshots indexed
        """
        logger.debug("Loading snapshots")
        try:
            snapshots = self._snapshot_loader()
        except SnapshotLoadError as e:
            for failure in e.failures:
                logger.error(
                    f"Skipping snapshots of {failure.data_dir}: {failure.message}",
                    extra={"data_dir": str(failure.data_dir)},
                )
            snapshots = e.snapshots

        with self._lock:
            added = sum(1 for snapshot in snapshots if self.add_snapshot(snapshot))
        logger.info(f"Tracking {added} expiring snapshots")
        return added

    def clear_expired_snapshots(self) -> CleanupReport:
        """Delete every tracked snapshot whose expiration instant has passed.

        The current time is read once, after the lock is taken.

        Returns:
            CleanupReport listing the cleared and failed snapshots
        """
        with self._lock:
            report = CleanupReport(now=self._clock())
            while True:
                snapshot = self._index.peek_earliest()
                if snapshot is None or not snapshot.is_expired(report.now):
                    break

                logger.debug(
                    f"Removing expired snapshot {snapshot}",
                    extra={"snapshot_id": snapshot.snapshot_id},
                )
                error = self._clear_snapshot(snapshot)
                if error is None:
                    report.cleared.append(snapshot)
                else:
                    report.failures.append(error)

        if report.cleared or report.failures:
            logger.info(
                f"Cleared {len(report.cleared)} expired snapshots, "
                f"{len(report.failures)} failed",
                extra={"cleared": len(report.cleared), "failed": len(report.failures)},
            )
        return report

    def clear_snapshot(self, snapshot: TableSnapshot) -> None:
        """Delete a snapshot now and stop tracking it.

        Raises:
            SnapshotDeletionError: If any of its directories could not be removed
        """
        with self._lock:
            error = self._clear_snapshot(snapshot)
        if error is not None:
            raise error

    @property
    def stats(self) -> dict[str, Any]:
        """Get manager statistics."""
        with self._lock:
            return {
                "running": self._cleanup_task is not None,
                "expiring_count": len(self._index),
                "cleared_count": self._cleared_count,
                "failed_count": self._failed_count,
            }

    def _resume_snapshot_cleanup(self) -> None:
        if self._cleanup_task is not None:
            logger.debug("Expired snapshot cleanup already scheduled")
            return

        self._cleanup_task = self.executor.schedule_with_fixed_delay(
            self._run_cleanup,
            self.initial_delay_seconds,
            self.cleanup_period_seconds,
            name="clear_expired_snapshots",
        )

    def _run_cleanup(self) -> None:
        with self._lock:
            # A run queued behind stop() must not touch the index
            if self._cleanup_task is None or self._cleanup_task.cancelled:
                return
            self.clear_expired_snapshots()

    def _clear_snapshot(self, snapshot: TableSnapshot) -> SnapshotDeletionError | None:
        errors: dict[Path, Exception] = {}
        try:
            for snapshot_dir in sorted(snapshot.directories):
                try:
                    self._remove_directory(self._rate_limiter, snapshot_dir)
                except Exception as e:
                    errors[snapshot_dir] = e
        finally:
            self._index.remove(snapshot)

        if not errors:
            self._cleared_count += 1
            return None

        self._failed_count += 1
        error = SnapshotDeletionError(snapshot, errors)
        logger.error(
            f"Failed to delete snapshot {snapshot.snapshot_id}; remove "
            f"{', '.join(str(p) for p in errors)} manually",
            extra={"snapshot_id": snapshot.snapshot_id, "directories": error.details["directories"]},
        )
        return error
