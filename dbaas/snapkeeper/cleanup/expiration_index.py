"""
Expiration index.

Orders expiring snapshots by expiration instant so a cleanup pass only
looks at the snapshots that are actually due.

Structure:
    A heapq min-heap of [expires_at, sequence, snapshot] entries plus a
    map from snapshot_id to its heap entry. Removing an arbitrary snapshot
    marks its entry dead in O(1); dead entries are dropped when they reach
    the top of the heap or when the heap is compacted.

Invariants:
    - Only snapshots with an expiration instant are admitted
    - At most one live entry per snapshot_id; re-inserting replaces it
    - Equal expiration instants are ordered by insertion sequence

The index is not thread-safe; SnapshotManager serializes access.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Any, Iterator

from ..snapshot.table_snapshot import TableSnapshot

logger = logging.getLogger(__name__)

_REMOVED = None

# Compact once dead entries outnumber live ones by this much
_COMPACT_SLACK = 64


class ExpirationIndex:
    """Priority index of expiring snapshots.

    Example:
        >>> index = ExpirationIndex()
        >>> index.insert(snapshot)
        >>> index.peek_earliest()
        TableSnapshot(...)
        >>> index.remove(snapshot)
    """

    def __init__(self) -> None:
        self._heap: list[list[Any]] = []
        self._entries: dict[str, list[Any]] = {}
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, snapshot: object) -> bool:
        if not isinstance(snapshot, TableSnapshot):
            return False
        entry = self._entries.get(snapshot.snapshot_id)
        return entry is not None and entry[-1] == snapshot

    def __iter__(self) -> Iterator[TableSnapshot]:
        """Iterate live snapshots in expiration order."""
        for entry in sorted(self._entries.values(), key=lambda e: (e[0], e[1])):
            yield entry[-1]

    def insert(self, snapshot: TableSnapshot) -> bool:
        """Add a snapshot to the index.

        Returns:
            True if the snapshot was added, False if it never expires
        """
        if not snapshot.is_expiring():
            return False

        existing = self._entries.pop(snapshot.snapshot_id, None)
        if existing is not None:
            existing[-1] = _REMOVED

        entry = [snapshot.expires_at, next(self._sequence), snapshot]
        self._entries[snapshot.snapshot_id] = entry
        heapq.heappush(self._heap, entry)
        return True

    def peek_earliest(self) -> TableSnapshot | None:
        """Return the snapshot with the smallest expiration instant, if any."""
        self._drop_dead_head()
        return self._heap[0][-1] if self._heap else None

    def pop_earliest(self) -> TableSnapshot | None:
        """Remove and return the snapshot with the smallest expiration instant."""
        self._drop_dead_head()
        if not self._heap:
            return None
        entry = heapq.heappop(self._heap)
        snapshot = entry[-1]
        del self._entries[snapshot.snapshot_id]
        return snapshot

    def remove(self, snapshot: TableSnapshot) -> bool:
        """Remove a snapshot wherever it sits in the index.

        A different snapshot tracked under the same snapshot_id is left alone.

        Returns:
            True if the snapshot was in the index
        """
        entry = self._entries.get(snapshot.snapshot_id)
        if entry is None or entry[-1] != snapshot:
            return False
        del self._entries[snapshot.snapshot_id]
        entry[-1] = _REMOVED
        if len(self._heap) > 2 * len(self._entries) + _COMPACT_SLACK:
            self._compact()
        return True

    def clear(self) -> None:
        self._heap.clear()
        self._entries.clear()

    def snapshots(self) -> tuple[TableSnapshot, ...]:
        """Snapshot of the live entries in expiration order."""
        return tuple(self)

    def _drop_dead_head(self) -> None:
        while self._heap and self._heap[0][-1] is _REMOVED:
            heapq.heappop(self._heap)

    def _compact(self) -> None:
        self._heap = [entry for entry in self._heap if entry[-1] is not _REMOVED]
        heapq.heapify(self._heap)
        logger.debug(f"Compacted expiration index to {len(self._heap)} entries")
