"""
Snapshot discovery across striped data directories.

This module finds snapshots on disk:
- DirectoryScanner walks one data directory for snapshot directories
- SnapshotReconciler merges directories of the same snapshot
- SnapshotLoader runs both over every configured data directory

Invariants:
    - One TableSnapshot per (keyspace, table, table_id, tag)
    - Directories under backups/ are never part of a snapshot
    - Malformed directories are skipped, failed data directories reported
"""

from .loader import LoadResult, SnapshotLoader
from .reconciler import SnapshotReconciler
from .scanner import (
    BACKUPS_SUBDIR,
    MAX_SCAN_DEPTH,
    SNAPSHOT_SUBDIR,
    DirectoryScanner,
    SnapshotDirectory,
    parse_snapshot_path,
    parse_table_id,
)

__all__ = [
    "BACKUPS_SUBDIR",
    "MAX_SCAN_DEPTH",
    "SNAPSHOT_SUBDIR",
    "DirectoryScanner",
    "LoadResult",
    "SnapshotDirectory",
    "SnapshotLoader",
    "SnapshotReconciler",
    "parse_snapshot_path",
    "parse_table_id",
]
