"""
Unit tests for the snapshot data model.

Tests cover:
- snapshot_id derivation
- Expiration predicates
- Builder directory accumulation and manifest reading
- Manifest timestamp handling
"""

import json
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dbaas.snapkeeper.snapshot import (
    MANIFEST_FILENAME,
    SnapshotIdentity,
    SnapshotManifest,
    TableSnapshot,
    TableSnapshotBuilder,
    build_snapshot_id,
)

TABLE_ID = uuid.UUID("c7e51324-3f07-11ec-9bbc-0242ac130002")


class TestTableSnapshot:
    """Tests for TableSnapshot."""

    def test_snapshot_id_format(self):
        """snapshot_id joins the identity fields with colons."""
        snapshot = TableSnapshot("ks", "tbl", TABLE_ID, "daily", {Path("/d1/x")})

        assert snapshot.snapshot_id == "ks:tbl:c7e51324-3f07-11ec-9bbc-0242ac130002:daily"
        assert snapshot.snapshot_id == build_snapshot_id("ks", "tbl", TABLE_ID, "daily")

    def test_snapshot_id_depends_only_on_identity(self, now):
        """Directories and timestamps do not change snapshot_id."""
        a = TableSnapshot("ks", "tbl", TABLE_ID, "daily", {Path("/d1/x")})
        b = TableSnapshot(
            "ks", "tbl", TABLE_ID, "daily", {Path("/d2/y"), Path("/d3/z")}, expires_at=now
        )

        assert a.snapshot_id == b.snapshot_id
        assert a.identity == b.identity

    def test_requires_a_directory(self):
        """A snapshot without directories is rejected."""
        with pytest.raises(ValueError, match="at least one directory"):
            TableSnapshot("ks", "tbl", TABLE_ID, "daily", frozenset())

    def test_rejects_naive_expiration(self):
        """expires_at must carry a timezone."""
        with pytest.raises(ValueError, match="timezone-aware"):
            TableSnapshot("ks", "tbl", TABLE_ID, "daily", {Path("/d1")}, expires_at=datetime(2026, 1, 1))

    def test_non_expiring(self, make_snapshot, now):
        """Snapshot without expiration never expires."""
        snapshot = make_snapshot()

        assert not snapshot.is_expiring()
        assert not snapshot.is_expired(now + timedelta(days=3650))

    def test_is_expired_boundary(self, make_snapshot, now):
        """Snapshot is expired at exactly its expiration instant."""
        snapshot = make_snapshot(expires_in=timedelta(seconds=10))

        assert snapshot.is_expiring()
        assert not snapshot.is_expired(now + timedelta(seconds=9))
        assert snapshot.is_expired(now + timedelta(seconds=10))
        assert snapshot.is_expired(now + timedelta(seconds=11))

    def test_directories_are_frozen_paths(self):
        """Directories are normalised to a frozenset of Path."""
        snapshot = TableSnapshot("ks", "tbl", TABLE_ID, "daily", ["/d1/x", "/d2/x"])

        assert snapshot.directories == frozenset({Path("/d1/x"), Path("/d2/x")})
        assert hash(snapshot)

    def test_exists(self, tmp_path):
        """exists() is true while any directory remains."""
        present = tmp_path / "present"
        present.mkdir()
        snapshot = TableSnapshot("ks", "tbl", TABLE_ID, "daily", {present, tmp_path / "gone"})

        assert snapshot.exists()
        present.rmdir()
        assert not snapshot.exists()


class TestTableSnapshotBuilder:
    """Tests for TableSnapshotBuilder."""

    @pytest.fixture
    def identity(self):
        return SnapshotIdentity("ks", "tbl", TABLE_ID, "daily")

    def test_build_collects_directories(self, identity, tmp_path):
        """Every added directory ends up in the snapshot, duplicates once."""
        builder = TableSnapshotBuilder(identity)
        builder.add_snapshot_dir(tmp_path / "d1")
        builder.add_snapshot_dir(tmp_path / "d2")
        builder.add_snapshot_dir(tmp_path / "d1")

        snapshot = builder.build()

        assert snapshot.directories == {tmp_path / "d1", tmp_path / "d2"}
        assert snapshot.identity == identity
        assert snapshot.expires_at is None

    def test_build_without_directories_fails(self, identity):
        """An identity with no directory is never materialized."""
        with pytest.raises(ValueError, match="no directories"):
            TableSnapshotBuilder(identity).build()

    def test_build_reads_manifest(self, identity, tmp_path, now):
        """Expiration is read back from the manifest of any directory."""
        d1 = tmp_path / "d1"
        d2 = tmp_path / "d2"
        d1.mkdir()
        d2.mkdir()
        SnapshotManifest(files=("a.db",), created_at=now, expires_at=now + timedelta(hours=1)).write(d2)

        snapshot = TableSnapshotBuilder(identity).add_snapshot_dirs([d1, d2]).build()

        assert snapshot.created_at == now
        assert snapshot.expires_at == now + timedelta(hours=1)

    def test_corrupt_manifest_is_ignored(self, identity, tmp_path, caplog):
        """A broken manifest is logged and the snapshot never expires."""
        d1 = tmp_path / "d1"
        d1.mkdir()
        (d1 / MANIFEST_FILENAME).write_text("{not json")

        snapshot = TableSnapshotBuilder(identity).add_snapshot_dir(d1).build()

        assert snapshot.expires_at is None
        assert "Ignoring unreadable manifest" in caplog.text

    def test_falls_back_to_next_readable_manifest(self, identity, tmp_path, now):
        """A corrupt manifest in one directory does not hide a valid one elsewhere."""
        d1 = tmp_path / "d1"
        d2 = tmp_path / "d2"
        d1.mkdir()
        d2.mkdir()
        (d1 / MANIFEST_FILENAME).write_text(json.dumps({"expires_at": "yesterday"}))
        SnapshotManifest(expires_at=now).write(d2)

        snapshot = TableSnapshotBuilder(identity).add_snapshot_dirs([d1, d2]).build()

        assert snapshot.expires_at == now


class TestSnapshotManifest:
    """Tests for SnapshotManifest."""

    def test_timestamps_written_with_z(self, tmp_path, now):
        """Timestamps are serialized as UTC with a trailing Z."""
        path = SnapshotManifest(files=("a.db",), created_at=now, expires_at=now).write(tmp_path)

        data = json.loads(path.read_text())
        assert data["created_at"] == "2026-03-01T12:00:00Z"
        assert data["files"] == ["a.db"]

    def test_reads_offset_timestamps(self):
        """Non-UTC offsets are normalised to UTC."""
        manifest = SnapshotManifest.from_dict(
            {"files": [], "created_at": "2026-03-01T14:00:00+02:00", "expires_at": None}
        )

        assert manifest.created_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        assert manifest.expires_at is None

    def test_missing_manifest(self, tmp_path):
        """A directory without manifest reads as None."""
        assert SnapshotManifest.read(tmp_path) is None

    def test_invalid_files_field(self):
        """'files' must be a list of strings."""
        with pytest.raises(ValueError, match="files"):
            SnapshotManifest.from_dict({"files": "a.db"})
