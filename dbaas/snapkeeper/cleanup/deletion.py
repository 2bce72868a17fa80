"""
Rate-limited snapshot directory removal.

Files are removed one at a time, each after taking a permit from the
shared RateLimiter, then the emptied directories are removed bottom-up.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def remove_snapshot_directory(rate_limiter: RateLimiter | None, snapshot_dir: Path) -> int:
    """Recursively remove a snapshot directory.

    A directory that no longer exists is left alone. Symlinks inside the
    snapshot are removed, never followed.

    Args:
        rate_limiter: Shared limiter (None for unlimited)
        snapshot_dir: Directory to remove

    Returns:
        Number of files removed

    Raises:
        OSError: If a file or directory cannot be removed
    """
    snapshot_dir = Path(snapshot_dir)
    if not os.path.lexists(snapshot_dir):
        logger.debug(f"Snapshot directory {snapshot_dir} already removed")
        return 0

    if snapshot_dir.is_symlink() or not snapshot_dir.is_dir():
        _remove_file(rate_limiter, snapshot_dir)
        return 1

    removed = 0
    for dirpath, dirnames, filenames in os.walk(snapshot_dir, topdown=False, onerror=_raise):
        for name in filenames:
            _remove_file(rate_limiter, Path(dirpath) / name)
            removed += 1
        for name in dirnames:
            path = Path(dirpath) / name
            if path.is_symlink():
                _remove_file(rate_limiter, path)
                removed += 1
            else:
                os.rmdir(path)
    os.rmdir(snapshot_dir)

    logger.debug(f"Removed snapshot directory {snapshot_dir} ({removed} files)")
    return removed


def _remove_file(rate_limiter: RateLimiter | None, path: Path) -> None:
    if rate_limiter is not None:
        rate_limiter.acquire()
    os.unlink(path)


def _raise(error: OSError) -> None:
    raise error
