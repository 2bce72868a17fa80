"""
Snapshot manifest file.

Every snapshot directory may carry a manifest written by the snapshot
creation path:

    <data-dir>/<keyspace>/<table>-<id>/snapshots/<tag>/manifest.json

Manifest contains:
    - files: Data files captured by the snapshot
    - created_at: When the snapshot was taken (ISO-8601, UTC)
    - expires_at: When the snapshot may be evicted (ISO-8601, UTC, or null)

Invariants:
    - Timestamps are written in UTC with a trailing "Z"
    - A missing expires_at means the snapshot never expires
    - Unknown keys are ignored when reading

How to change safely:
    - Add new manifest fields, don't remove existing ones
    - New fields must be optional when reading
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"


def format_instant(value: datetime) -> str:
    """Format an aware datetime as ISO-8601 UTC with a trailing Z."""
    if value.tzinfo is None:
        raise ValueError(f"Naive datetime is not allowed: {value!r}")
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class SnapshotManifest:
    """Contents of a snapshot's manifest.json.

    Attributes:
        files: Data file names captured by the snapshot
        created_at: Snapshot creation instant
        expires_at: Expiration instant (None if the snapshot never expires)
    """

    files: tuple[str, ...] = ()
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "files": list(self.files),
            "created_at": format_instant(self.created_at) if self.created_at else None,
            "expires_at": format_instant(self.expires_at) if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SnapshotManifest:
        """Create from dictionary.

        Raises:
            ValueError: If a field has the wrong type or an invalid timestamp
        """
        if not isinstance(data, dict):
            raise ValueError(f"Manifest must be a JSON object, got {type(data).__name__}")

        files = data.get("files") or []
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise ValueError("Manifest 'files' must be a list of strings")

        created_at = data.get("created_at")
        expires_at = data.get("expires_at")
        return cls(
            files=tuple(files),
            created_at=parse_instant(created_at) if created_at is not None else None,
            expires_at=parse_instant(expires_at) if expires_at is not None else None,
        )

    @classmethod
    def read(cls, directory: Path) -> SnapshotManifest | None:
        """Read the manifest of a snapshot directory.

        Args:
            directory: Snapshot directory

        Returns:
            The manifest, or None if the directory has no manifest file

        Raises:
            OSError: If the manifest exists but cannot be read
            ValueError: If the manifest is not valid JSON or has invalid fields
        """
        manifest_path = Path(directory) / MANIFEST_FILENAME
        if not manifest_path.is_file():
            return None

        with open(manifest_path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in {manifest_path}: {e}") from e

        return cls.from_dict(data)

    def write(self, directory: Path) -> Path:
        """Write the manifest into a snapshot directory.

        Args:
            directory: Snapshot directory (must exist)

        Returns:
            Path of the written manifest file
        """
        manifest_path = Path(directory) / MANIFEST_FILENAME
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug(f"Wrote snapshot manifest {manifest_path}")
        return manifest_path
