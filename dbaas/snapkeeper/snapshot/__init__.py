"""
Snapshot data model.

This module defines the logical snapshot entity and its on-disk manifest:
- SnapshotIdentity / build_snapshot_id for reconciliation keys
- TableSnapshot, the immutable reconciled snapshot
- TableSnapshotBuilder, which collects directories during a load
- SnapshotManifest, the manifest.json written beside snapshot files

Invariants:
    - A snapshot's identity is (keyspace, table, table_id, tag)
    - A snapshot owns at least one physical directory
    - Expiration comes from the manifest and is never renewed
"""

from .manifest import MANIFEST_FILENAME, SnapshotManifest
from .table_snapshot import (
    SnapshotIdentity,
    TableSnapshot,
    TableSnapshotBuilder,
    build_snapshot_id,
)

__all__ = [
    "MANIFEST_FILENAME",
    "SnapshotIdentity",
    "SnapshotManifest",
    "TableSnapshot",
    "TableSnapshotBuilder",
    "build_snapshot_id",
]
