"""
Expired snapshot cleanup.

This module provides the pieces SnapshotManager composes:
- ExpirationIndex orders expiring snapshots by expiration instant
- CleanupExecutor runs the periodic cleanup task on a background thread
- RateLimiter and remove_snapshot_directory delete snapshot files at a
  bounded rate

Invariants:
    - Snapshots are evicted in non-decreasing expiration order
    - Only one cleanup run executes at a time
    - Deletion throttles under load, it never fails because of the limiter
"""

from .deletion import remove_snapshot_directory
from .expiration_index import ExpirationIndex
from .rate_limiter import RateLimiter
from .scheduler import (
    CleanupExecutor,
    ScheduledTask,
    get_cleanup_executor,
    reset_cleanup_executor,
)

__all__ = [
    "CleanupExecutor",
    "ExpirationIndex",
    "RateLimiter",
    "ScheduledTask",
    "get_cleanup_executor",
    "remove_snapshot_directory",
    "reset_cleanup_executor",
]
