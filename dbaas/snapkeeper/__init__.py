"""
Snapkeeper - snapshot lifecycle management for a multi-disk storage node.

A node stripes every table across several independently configured data
directories, so one logical snapshot is a set of physical directories:

    <data-dir>/<keyspace>/<table>-<32-hex-table-id>/snapshots/<tag>/

This package discovers those directories, reconciles them into logical
snapshots, and evicts snapshots whose time-to-live has passed.

Architecture:
    ┌────────────┐   ┌──────────────┐   ┌────────────────┐
    │ data dir 1 │──▶│              │   │                │
    ├────────────┤   │  Directory   │──▶│   Snapshot     │
    │ data dir 2 │──▶│   Scanner    │   │   Reconciler   │
    ├────────────┤   │              │   │                │
    │ data dir N │──▶│              │   └───────┬────────┘
    └────────────┘   └──────────────┘           │ TableSnapshot set
                                                ▼
    ┌──────────────────┐  add_snapshot  ┌─────────────────┐
    │ snapshot creation│───────────────▶│ SnapshotManager │
    └──────────────────┘                │  (lock, index)  │
                                        └───────┬─────────┘
                                                │ periodic tick
                                                ▼
                                        ┌─────────────────┐
                                        │ CleanupExecutor │──▶ rate-limited
                                        │  (APScheduler)  │    directory removal
                                        └─────────────────┘

Invariants:
    - snapshot_id is a pure function of (keyspace, table, table_id, tag)
    - A snapshot always owns at least one directory
    - Expiration is fixed at creation time and read back from manifest.json
    - Only one eviction tick runs at a time, and it holds the manager lock

How to change safely:
    - The on-disk directory layout is shared with existing snapshots; never change it
    - New manifest fields must be optional when reading
"""

from ._version import __version__

__all__ = ["__version__"]
