"""
Unit tests for the expiration index.

Tests cover:
- Ordering by expiration instant
- Non-expiring snapshots
- Removal of arbitrary entries
- Deterministic tie-break
"""

from datetime import timedelta

import pytest

from dbaas.snapkeeper.cleanup import ExpirationIndex


class TestExpirationIndex:
    """Tests for ExpirationIndex."""

    @pytest.fixture
    def index(self):
        return ExpirationIndex()

    def test_peek_in_expiration_order(self, index, make_snapshot):
        """Inserted at +10s, +5s, +20s, peeked back as +5s, +10s, +20s."""
        s10 = make_snapshot("s10", timedelta(seconds=10))
        s5 = make_snapshot("s5", timedelta(seconds=5))
        s20 = make_snapshot("s20", timedelta(seconds=20))
        for snapshot in (s10, s5, s20):
            assert index.insert(snapshot)

        order = []
        while (earliest := index.peek_earliest()) is not None:
            order.append(earliest)
            index.remove(earliest)

        assert order == [s5, s10, s20]

    def test_non_expiring_is_ignored(self, index, make_snapshot):
        """Snapshots without expiration are not admitted."""
        assert not index.insert(make_snapshot("forever"))

        assert len(index) == 0
        assert index.peek_earliest() is None

    def test_remove_arbitrary_entry(self, index, make_snapshot):
        """A snapshot in the middle of the order can be removed."""
        s1 = make_snapshot("s1", timedelta(seconds=1))
        s2 = make_snapshot("s2", timedelta(seconds=2))
        s3 = make_snapshot("s3", timedelta(seconds=3))
        for snapshot in (s1, s2, s3):
            index.insert(snapshot)

        assert index.remove(s2)
        assert not index.remove(s2)

        assert index.snapshots() == (s1, s3)
        assert s2 not in index
        assert index.pop_earliest() == s1
        assert index.pop_earliest() == s3
        assert index.pop_earliest() is None

    def test_remove_other_snapshot_with_same_id(self, index, make_snapshot):
        """Removing a different snapshot that shares the id keeps the tracked one."""
        tracked = make_snapshot("x", timedelta(hours=1))
        other = make_snapshot("x", timedelta(hours=5))
        index.insert(tracked)

        assert not index.remove(other)

        assert len(index) == 1
        assert tracked in index
        assert index.peek_earliest() == tracked

    def test_remove_earliest(self, index, make_snapshot):
        """Removing the head exposes the next earliest."""
        s1 = make_snapshot("s1", timedelta(seconds=1))
        s2 = make_snapshot("s2", timedelta(seconds=2))
        index.insert(s2)
        index.insert(s1)

        index.remove(s1)

        assert index.peek_earliest() == s2
        assert len(index) == 1

    def test_reinsert_replaces(self, index, make_snapshot):
        """Re-adding a snapshot_id keeps a single entry."""
        snapshot = make_snapshot("s1", timedelta(seconds=1))

        index.insert(snapshot)
        index.insert(snapshot)

        assert len(index) == 1
        assert index.pop_earliest() == snapshot
        assert index.peek_earliest() is None

    def test_equal_expiration_ordered_by_insertion(self, index, make_snapshot):
        """Ties are broken by insertion order."""
        first = make_snapshot("b", timedelta(seconds=5))
        second = make_snapshot("a", timedelta(seconds=5))
        index.insert(first)
        index.insert(second)

        assert index.pop_earliest() == first
        assert index.pop_earliest() == second

    def test_clear(self, index, make_snapshot):
        index.insert(make_snapshot("s1", timedelta(seconds=1)))
        index.insert(make_snapshot("s2", timedelta(seconds=2)))

        index.clear()

        assert not index
        assert index.peek_earliest() is None

    def test_many_removals_keep_order(self, index, make_snapshot):
        """Heavy removal (heap compaction) keeps the remaining order intact."""
        snapshots = [make_snapshot(f"s{i}", timedelta(seconds=i)) for i in range(300)]
        for snapshot in reversed(snapshots):
            index.insert(snapshot)

        for snapshot in snapshots:
            if snapshot.tag not in ("s7", "s150", "s299"):
                index.remove(snapshot)

        assert [s.tag for s in index.snapshots()] == ["s7", "s150", "s299"]
        assert index.peek_earliest().tag == "s7"
