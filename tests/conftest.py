"""
Shared fixtures for snapshot tests.

Snapshot trees are built under pytest's tmp_path with the real on-disk
layout: <data-dir>/<keyspace>/<table>-<hex id>/snapshots/<tag>/
"""

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dbaas.snapkeeper.snapshot import SnapshotManifest, TableSnapshot

TABLE_ID = uuid.UUID("c7e51324-3f07-11ec-9bbc-0242ac130002")
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time."""
    return NOW


@pytest.fixture
def make_snapshot_dir():
    """Factory creating one physical snapshot directory."""

    def _make(
        data_dir: Path,
        keyspace: str = "ks",
        table: str = "tbl",
        table_id: uuid.UUID = TABLE_ID,
        tag: str = "snap",
        files=("nb-1-big-Data.db", "nb-1-big-Index.db"),
        created_at=None,
        expires_at=None,
    ) -> Path:
        path = Path(data_dir) / keyspace / f"{table}-{table_id.hex}" / "snapshots" / tag
        path.mkdir(parents=True)
        for name in files:
            (path / name).write_bytes(b"sstable")
        if created_at is not None or expires_at is not None:
            SnapshotManifest(
                files=tuple(files),
                created_at=created_at,
                expires_at=expires_at,
            ).write(path)
        return path

    return _make


@pytest.fixture
def make_snapshot(tmp_path):
    """Factory creating an in-memory TableSnapshot (directories need not exist)."""

    def _make(
        tag: str = "snap",
        expires_in: timedelta | None = None,
        keyspace: str = "ks",
        table: str = "tbl",
        table_id: uuid.UUID = TABLE_ID,
        directories=None,
    ) -> TableSnapshot:
        if directories is None:
            directories = [tmp_path / "data1" / keyspace / f"{table}-{table_id.hex}" / "snapshots" / tag]
        return TableSnapshot(
            keyspace_name=keyspace,
            table_name=table,
            table_id=table_id,
            tag=tag,
            directories=frozenset(directories),
            created_at=NOW,
            expires_at=NOW + expires_in if expires_in is not None else None,
        )

    return _make
