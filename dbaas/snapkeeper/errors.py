"""
Error types for snapshot lifecycle management.

This module defines all exception types raised by the package:
- SnapshotError: Base exception
- MalformedSnapshotDirectoryError: Directory under snapshots/ that cannot be parsed
- RootWalkError: I/O failure while walking one data directory
- SnapshotLoadError: One or more data directories failed during a load
- SnapshotDeletionError: Removing a snapshot's directories failed
- ShutdownTimeoutError: Background cleanup did not drain in time
- SchedulerShutdownError: Scheduling on an executor that was shut down

Invariants:
    - All errors inherit from SnapshotError
    - Errors include context for debugging
    - Per-directory errors are recovered by the caller; only root walk
      failures and shutdown timeouts are surfaced as failures
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .snapshot.table_snapshot import TableSnapshot


class SnapshotError(Exception):
    """Base exception for all snapshot lifecycle errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SNAPSHOT_ERROR"
        self.details = details or {}


class MalformedSnapshotDirectoryError(SnapshotError):
    """Directory sits under a snapshots/ directory but does not parse.

    Raised when:
    - The path relative to its data directory is not
      <keyspace>/<table>-<table-id>/snapshots/<tag>
    - The table id is not exactly 32 lowercase hex characters
    - A name segment contains characters outside its allowed set
    """

    def __init__(self, message: str, directory: Path | str | None = None) -> None:
        super().__init__(
            message,
            code="MALFORMED_SNAPSHOT_DIR",
            details={"directory": str(directory) if directory is not None else None},
        )
        self.directory = directory


class RootWalkError(SnapshotError):
    """Walking one data directory failed with an I/O error.

    The snapshots found under that data directory are discarded for this
    load; other data directories are unaffected.
    """

    def __init__(self, data_dir: Path | str, cause: OSError) -> None:
        super().__init__(
            f"Error while loading snapshots from {data_dir}: {cause}",
            code="ROOT_WALK_FAILED",
            details={"data_dir": str(data_dir)},
        )
        self.data_dir = Path(data_dir)
        self.cause = cause


class SnapshotLoadError(SnapshotError):
    """At least one data directory could not be walked.

    Attributes:
        failures: One RootWalkError per failed data directory
        snapshots: Snapshots reconciled from the data directories that succeeded
    """

    def __init__(
        self,
        failures: list[RootWalkError],
        snapshots: set[TableSnapshot] | None = None,
    ) -> None:
        failed = ", ".join(str(f.data_dir) for f in failures)
        super().__init__(
            f"Failed to load snapshots from {len(failures)} data director"
            f"{'y' if len(failures) == 1 else 'ies'}: {failed}",
            code="SNAPSHOT_LOAD_FAILED",
            details={"data_dirs": [str(f.data_dir) for f in failures]},
        )
        self.failures = failures
        self.snapshots = snapshots or set()


class SnapshotDeletionError(SnapshotError):
    """Removing one or more directories of a snapshot failed.

    The snapshot has already been dropped from the expiration index when
    this is raised; the leftover directories need manual cleanup.
    """

    def __init__(self, snapshot: TableSnapshot, errors: dict[Path, Exception]) -> None:
        super().__init__(
            f"Failed to remove {len(errors)} of {len(snapshot.directories)} "
            f"directories of snapshot {snapshot.snapshot_id}",
            code="SNAPSHOT_DELETE_FAILED",
            details={
                "snapshot_id": snapshot.snapshot_id,
                "directories": {str(path): str(err) for path, err in errors.items()},
            },
        )
        self.snapshot = snapshot
        self.errors = errors


class ShutdownTimeoutError(SnapshotError):
    """Background cleanup work did not finish within the allotted wait."""

    def __init__(self, timeout_seconds: float, pending: int) -> None:
        super().__init__(
            f"Snapshot cleanup did not finish within {timeout_seconds}s "
            f"({pending} task(s) still running)",
            code="SHUTDOWN_TIMEOUT",
            details={"timeout_seconds": timeout_seconds, "pending": pending},
        )
        self.timeout_seconds = timeout_seconds
        self.pending = pending


class SchedulerShutdownError(SnapshotError):
    """The cleanup executor was shut down and cannot schedule new tasks."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Cleanup executor '{name}' has been shut down",
            code="SCHEDULER_SHUT_DOWN",
            details={"executor": name},
        )
        self.name = name
