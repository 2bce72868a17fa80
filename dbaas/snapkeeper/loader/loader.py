"""
Snapshot loader.

Loads every snapshot present in the configured data directories in two
phases:
1. Scan each data directory independently into (identity, path) pairs
2. Reconcile all pairs into TableSnapshot entities

Invariants:
    - A failed data directory contributes nothing to the result
    - Every failed data directory is reported, none is silently dropped
    - A malformed snapshot directory never fails the load
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from ..errors import RootWalkError, SnapshotLoadError
from ..snapshot.table_snapshot import TableSnapshot
from .reconciler import SnapshotReconciler
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    """Outcome of loading snapshots from all data directories.

    Attributes:
        snapshots: Reconciled snapshots from the data directories that succeeded
        failures: One error per data directory whose walk failed
    """

    snapshots: set[TableSnapshot] = field(default_factory=set)
    failures: list[RootWalkError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class SnapshotLoader:
    """Loads snapshot metadata from data directories.

    Attributes:
        data_directories: Data directories to scan
        scanner: Scanner used for each data directory

    Example:
        >>> loader = SnapshotLoader(["/var/lib/data1", "/var/lib/data2"])
        >>> snapshots = loader.load_snapshots()
    """

    def __init__(
        self,
        data_directories: Iterable[Path | str],
        scanner: DirectoryScanner | None = None,
    ) -> None:
        self.data_directories = [Path(d) for d in data_directories]
        self.scanner = scanner or DirectoryScanner()

    def load(self) -> LoadResult:
        """Scan every data directory and reconcile the results.

        Returns:
            LoadResult with the snapshots and the per-directory failures
        """
        result = LoadResult()
        reconciler = SnapshotReconciler()

        for data_dir in self.data_directories:
            try:
                found = self.scanner.scan(data_dir)
            except RootWalkError as e:
                logger.error(
                    f"Error while loading snapshots from {data_dir}: {e.cause}",
                    extra={"data_dir": str(data_dir)},
                )
                result.failures.append(e)
                continue
            reconciler.add_all(found)

        result.snapshots = reconciler.build()
        logger.info(
            f"Loaded {len(result.snapshots)} snapshots from "
            f"{len(self.data_directories) - len(result.failures)} of "
            f"{len(self.data_directories)} data directories"
        )
        return result

    def load_snapshots(self) -> set[TableSnapshot]:
        """Load all snapshots.

        Returns:
            Set of reconciled snapshots

        Raises:
            SnapshotLoadError: If any data directory failed; the error carries
                the snapshots loaded from the other data directories
        """
        result = self.load()
        if result.failures:
            raise SnapshotLoadError(result.failures, result.snapshots)
        return result.snapshots
