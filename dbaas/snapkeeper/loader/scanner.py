"""
Snapshot directory scanner.

Walks one data directory and returns every directory laid out as a table
snapshot:

    <data-dir>/<keyspace>/<table>-<32-hex-table-id>/snapshots/<tag>/

Walk rules:
    - The walk is bounded to MAX_SCAN_DEPTH levels below the data directory
    - A directory whose parent is named "snapshots" is a leaf: it is parsed,
      and its children are never visited
    - A directory named "backups" is never visited
    - Symlinks are not followed

Invariants:
    - Paths are parsed segment by segment, no combined pattern is matched
    - The table id is split at hex offsets 8/12/16/20, never reparsed as a number
    - A directory that fails to parse is logged and skipped; the walk continues
    - An I/O error aborts the walk of that data directory only (RootWalkError)

How to change safely:
    - The layout is shared with snapshots already on disk; keep it bit-exact
    - Test against real trees with several data directories
"""

from __future__ import annotations

import logging
import os
import string
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePath

from ..errors import MalformedSnapshotDirectoryError, RootWalkError
from ..snapshot.table_snapshot import SnapshotIdentity

logger = logging.getLogger(__name__)

SNAPSHOT_SUBDIR = "snapshots"
BACKUPS_SUBDIR = "backups"
MAX_SCAN_DEPTH = 5
TABLE_ID_LENGTH = 32

_WORD_CHARS = frozenset(string.ascii_letters + string.digits + "_")
_TAG_CHARS = _WORD_CHARS | {"-"}
_HEX_CHARS = frozenset("0123456789abcdef")


def parse_table_id(table_id_hex: str) -> uuid.UUID:
    """Parse a table id stored without dashes.

    Given c7e513243f0711ec9bbc0242ac130002, returns the UUID
    c7e51324-3f07-11ec-9bbc-0242ac130002.

    Raises:
        ValueError: If the value is not exactly 32 lowercase hex characters
    """
    if len(table_id_hex) != TABLE_ID_LENGTH:
        raise ValueError(
            f"Table id must be {TABLE_ID_LENGTH} hex characters, got {len(table_id_hex)}: "
            f"{table_id_hex!r}"
        )
    if not set(table_id_hex) <= _HEX_CHARS:
        raise ValueError(f"Table id must be lowercase hex: {table_id_hex!r}")

    dashed = "-".join(
        (
            table_id_hex[0:8],
            table_id_hex[8:12],
            table_id_hex[12:16],
            table_id_hex[16:20],
            table_id_hex[20:],
        )
    )
    return uuid.UUID(dashed)


def _require_chars(value: str, allowed: frozenset[str], what: str, relative: PurePath) -> None:
    if not value or not set(value) <= allowed:
        raise MalformedSnapshotDirectoryError(f"Invalid {what} {value!r} in {relative}", relative)


def parse_snapshot_path(relative: PurePath) -> SnapshotIdentity:
    """Parse a snapshot directory path relative to its data directory.

    Args:
        relative: Path such as ks/tbl-<32 hex>/snapshots/tag

    Returns:
        The snapshot identity encoded in the path

    Raises:
        MalformedSnapshotDirectoryError: If the path is not a snapshot directory
    """
    parts = PurePath(relative).parts
    if len(parts) != 4 or parts[2] != SNAPSHOT_SUBDIR:
        raise MalformedSnapshotDirectoryError(
            f"Expected <keyspace>/<table>-<id>/{SNAPSHOT_SUBDIR}/<tag>, got {relative}",
            relative,
        )

    keyspace_name, table_dir, _, tag = parts
    _require_chars(keyspace_name, _WORD_CHARS, "keyspace", relative)

    table_name, sep, table_id_hex = table_dir.rpartition("-")
    if not sep:
        raise MalformedSnapshotDirectoryError(
            f"Table directory {table_dir!r} has no table id in {relative}", relative
        )
    _require_chars(table_name, _WORD_CHARS, "table name", relative)

    try:
        table_id = parse_table_id(table_id_hex)
    except ValueError as e:
        raise MalformedSnapshotDirectoryError(f"{e} in {relative}", relative) from e

    _require_chars(tag, _TAG_CHARS, "tag", relative)

    return SnapshotIdentity(
        keyspace_name=keyspace_name,
        table_name=table_name,
        table_id=table_id,
        tag=tag,
    )


@dataclass(frozen=True)
class SnapshotDirectory:
    """One physical snapshot directory found by the scanner.

    Attributes:
        identity: Snapshot identity parsed from the path
        path: Absolute path of the snapshot directory
        data_dir: Data directory the snapshot directory was found under
    """

    identity: SnapshotIdentity
    path: Path
    data_dir: Path


class DirectoryScanner:
    """Finds snapshot directories under a data directory.

    The scanner keeps no state between calls, so one instance can scan any
    number of data directories.

    Example:
        >>> scanner = DirectoryScanner()
        >>> for found in scanner.scan(Path("/var/lib/data1")):
        ...     print(found.identity.snapshot_id, found.path)
    """

    def __init__(self, max_depth: int = MAX_SCAN_DEPTH) -> None:
        """Initialize the scanner.

        Args:
            max_depth: Deepest directory level visited below a data directory
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self.max_depth = max_depth

    def scan(self, data_dir: Path | str) -> list[SnapshotDirectory]:
        """Scan one data directory.

        Args:
            data_dir: Data directory to walk

        Returns:
            Snapshot directories in walk order

        Raises:
            RootWalkError: If listing any directory of the walk fails
        """
        data_dir = Path(data_dir)
        if not data_dir.is_dir():
            logger.debug(f"Skipping missing data directory {data_dir}")
            return []

        found: list[SnapshotDirectory] = []
        try:
            self._walk(data_dir, data_dir, 0, found)
        except OSError as e:
            raise RootWalkError(data_dir, e) from e
        return found

    def _walk(
        self,
        data_dir: Path,
        directory: Path,
        depth: int,
        found: list[SnapshotDirectory],
    ) -> None:
        child_depth = depth + 1
        if child_depth >= self.max_depth:
            return

        for subdir in self._subdirectories(directory):
            if directory.name == SNAPSHOT_SUBDIR and directory != data_dir:
                self._visit_snapshot_dir(data_dir, subdir, found)
                continue

            if subdir.name == BACKUPS_SUBDIR:
                continue

            self._walk(data_dir, subdir, child_depth, found)

    def _visit_snapshot_dir(
        self,
        data_dir: Path,
        subdir: Path,
        found: list[SnapshotDirectory],
    ) -> None:
        logger.debug(f"Processing directory {subdir}")
        try:
            identity = parse_snapshot_path(subdir.relative_to(data_dir))
        except MalformedSnapshotDirectoryError as e:
            logger.warning(
                f"Could not load snapshot from {subdir}: {e.message}",
                extra={"data_dir": str(data_dir), "directory": str(subdir)},
            )
            return

        found.append(SnapshotDirectory(identity=identity, path=subdir, data_dir=data_dir))

    @staticmethod
    def _subdirectories(directory: Path) -> list[Path]:
        with os.scandir(directory) as entries:
            return sorted(
                Path(entry.path) for entry in entries if entry.is_dir(follow_symlinks=False)
            )
