"""
Logical table snapshots.

A table snapshot is identified by (keyspace, table, table_id, tag). Because
a table is striped over every configured data directory, one logical
snapshot owns one physical directory per data directory that holds data
for the table.

Invariants:
    - snapshot_id is derived only from the four identity fields
    - A TableSnapshot owns at least one directory
    - expires_at is fixed when the snapshot is created; rediscovering the
      snapshot on disk reads it back from the manifest, never renews it

How to change safely:
    - snapshot_id is shown to operators; keep its format stable
    - Add new fields with defaults so existing constructors keep working
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .manifest import SnapshotManifest

logger = logging.getLogger(__name__)


def build_snapshot_id(keyspace_name: str, table_name: str, table_id: uuid.UUID, tag: str) -> str:
    """Build the stable, human-readable id of a logical snapshot."""
    return f"{keyspace_name}:{table_name}:{table_id}:{tag}"


@dataclass(frozen=True)
class SnapshotIdentity:
    """Identity of a logical snapshot.

    Two directories with equal identities belong to the same snapshot.

    Attributes:
        keyspace_name: Keyspace of the table
        table_name: Table name
        table_id: Table id (changes when a table is dropped and recreated)
        tag: Snapshot name given by the operator or the system
    """

    keyspace_name: str
    table_name: str
    table_id: uuid.UUID
    tag: str

    @property
    def snapshot_id(self) -> str:
        return build_snapshot_id(self.keyspace_name, self.table_name, self.table_id, self.tag)

    def __str__(self) -> str:
        return self.snapshot_id


@dataclass(frozen=True)
class TableSnapshot:
    """A reconciled logical snapshot.

    Attributes:
        keyspace_name: Keyspace of the table
        table_name: Table name
        table_id: Table id
        tag: Snapshot name
        directories: Physical snapshot directories, one per data directory
        created_at: When the snapshot was taken, if known
        expires_at: When the snapshot may be evicted (None = never)

    Example:
        >>> snapshot = TableSnapshot("ks", "tbl", table_id, "daily", {Path("/d1/...")})
        >>> snapshot.snapshot_id
        'ks:tbl:c7e51324-3f07-11ec-9bbc-0242ac130002:daily'
    """

    keyspace_name: str
    table_name: str
    table_id: uuid.UUID
    tag: str
    directories: frozenset[Path] = field(default_factory=frozenset)
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        directories = frozenset(Path(d) for d in self.directories)
        if not directories:
            raise ValueError(f"Snapshot {self.snapshot_id} must have at least one directory")
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            raise ValueError(f"Snapshot {self.snapshot_id} expires_at must be timezone-aware")
        object.__setattr__(self, "directories", directories)

    @property
    def snapshot_id(self) -> str:
        """Stable id derived from the identity fields."""
        return build_snapshot_id(self.keyspace_name, self.table_name, self.table_id, self.tag)

    @property
    def identity(self) -> SnapshotIdentity:
        return SnapshotIdentity(self.keyspace_name, self.table_name, self.table_id, self.tag)

    def is_expiring(self) -> bool:
        """Whether the snapshot has an expiration instant."""
        return self.expires_at is not None

    def is_expired(self, now: datetime) -> bool:
        """Whether the snapshot's expiration instant is at or before now."""
        return self.expires_at is not None and self.expires_at <= now

    def exists(self) -> bool:
        """Whether any of the snapshot's directories is still on disk."""
        return any(d.exists() for d in self.directories)

    def __str__(self) -> str:
        expires = self.expires_at.isoformat() if self.expires_at else "never"
        return (
            f"TableSnapshot(id={self.snapshot_id}, "
            f"directories={len(self.directories)}, expires_at={expires})"
        )


class TableSnapshotBuilder:
    """Accumulates the directories of one snapshot before building it.

    Example:
        >>> builder = TableSnapshotBuilder(identity)
        >>> builder.add_snapshot_dir(Path("/data1/ks/tbl-<id>/snapshots/daily"))
        >>> builder.add_snapshot_dir(Path("/data2/ks/tbl-<id>/snapshots/daily"))
        >>> snapshot = builder.build()
    """

    def __init__(self, identity: SnapshotIdentity) -> None:
        self.identity = identity
        self._directories: list[Path] = []

    @property
    def directories(self) -> list[Path]:
        return list(self._directories)

    def add_snapshot_dir(self, directory: Path) -> TableSnapshotBuilder:
        directory = Path(directory)
        if directory not in self._directories:
            self._directories.append(directory)
        return self

    def add_snapshot_dirs(self, directories: Iterable[Path]) -> TableSnapshotBuilder:
        for directory in directories:
            self.add_snapshot_dir(directory)
        return self

    def build(self) -> TableSnapshot:
        """Build the snapshot, reading timestamps from the first readable manifest.

        Raises:
            ValueError: If no directory was added
        """
        if not self._directories:
            raise ValueError(f"Snapshot {self.identity.snapshot_id} has no directories")

        manifest = self._read_manifest()
        return TableSnapshot(
            keyspace_name=self.identity.keyspace_name,
            table_name=self.identity.table_name,
            table_id=self.identity.table_id,
            tag=self.identity.tag,
            directories=frozenset(self._directories),
            created_at=manifest.created_at if manifest else None,
            expires_at=manifest.expires_at if manifest else None,
        )

    def _read_manifest(self) -> SnapshotManifest | None:
        for directory in sorted(self._directories):
            try:
                manifest = SnapshotManifest.read(directory)
            except (OSError, ValueError) as e:
                logger.warning(
                    f"Ignoring unreadable manifest in {directory}: {e}",
                    extra={"snapshot_id": self.identity.snapshot_id, "directory": str(directory)},
                )
                continue
            if manifest is not None:
                return manifest
        return None
