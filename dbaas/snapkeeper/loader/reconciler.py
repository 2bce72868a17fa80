"""
Snapshot reconciler.

Groups the directories found by the scanner into logical snapshots. A
table striped over N data directories has up to N directories per
snapshot, and they only form one snapshot after every data directory has
been scanned.

The reconciler runs single-threaded after the walks finish, so it needs
no locking.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from ..snapshot.table_snapshot import SnapshotIdentity, TableSnapshot, TableSnapshotBuilder
from .scanner import SnapshotDirectory

logger = logging.getLogger(__name__)


class SnapshotReconciler:
    """Builds one TableSnapshot per snapshot_id.

    Example:
        >>> reconciler = SnapshotReconciler()
        >>> reconciler.add_all(scanner.scan(data_dir_1))
        >>> reconciler.add_all(scanner.scan(data_dir_2))
        >>> snapshots = reconciler.build()
    """

    def __init__(self) -> None:
        self._builders: dict[str, TableSnapshotBuilder] = {}

    def __len__(self) -> int:
        return len(self._builders)

    def add(self, identity: SnapshotIdentity, directory: Path) -> None:
        """Attach a physical directory to its logical snapshot."""
        snapshot_id = identity.snapshot_id
        builder = self._builders.get(snapshot_id)
        if builder is None:
            builder = TableSnapshotBuilder(identity)
            self._builders[snapshot_id] = builder
        builder.add_snapshot_dir(directory)

    def add_all(self, found: Iterable[SnapshotDirectory]) -> None:
        for snapshot_dir in found:
            self.add(snapshot_dir.identity, snapshot_dir.path)

    def build(self) -> set[TableSnapshot]:
        """Finalize every builder into an immutable snapshot."""
        snapshots = {builder.build() for builder in self._builders.values()}
        logger.debug(f"Reconciled {len(snapshots)} snapshots")
        return snapshots
