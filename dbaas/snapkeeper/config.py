"""
Configuration management for the snapshot lifecycle service.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST list every data directory in DATA_DIRS
    - Snapshot cleanup never runs more often than period_seconds

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def _split_paths(value: str) -> tuple[str, ...]:
    return tuple(p.strip() for p in value.split(",") if p.strip())


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dirs: Data directories a node stripes its tables across
    """

    data_dirs: tuple[str, ...] = ("/var/lib/snapkeeper/data",)

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dirs=_split_paths(os.getenv("DATA_DIRS", "/var/lib/snapkeeper/data")),
        )


@dataclass(frozen=True)
class CleanupConfig:
    """Expired snapshot cleanup configuration.

    Attributes:
        enabled: Whether expired snapshots are deleted automatically
        initial_delay_seconds: Delay before the first cleanup run
        period_seconds: Interval between cleanup runs
        delete_files_per_second: Snapshot file removal rate (0 = unlimited)
        shutdown_timeout_seconds: Wait for an in-flight cleanup run on shutdown
    """

    enabled: bool = True
    initial_delay_seconds: int = 5
    period_seconds: int = 60
    delete_files_per_second: float = 0.0
    shutdown_timeout_seconds: int = 60

    @classmethod
    def from_env(cls) -> CleanupConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=os.getenv("SNAPSHOT_CLEANUP_ENABLED", "true").lower() == "true",
            initial_delay_seconds=int(os.getenv("SNAPSHOT_CLEANUP_INITIAL_DELAY_SECONDS", "5")),
            period_seconds=int(os.getenv("SNAPSHOT_CLEANUP_PERIOD_SECONDS", "60")),
            delete_files_per_second=float(os.getenv("SNAPSHOT_DELETE_FILES_PER_SECOND", "0")),
            shutdown_timeout_seconds=int(os.getenv("SNAPSHOT_SHUTDOWN_TIMEOUT_SECONDS", "60")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete service configuration.

    Attributes:
        storage: Data directory configuration
        cleanup: Snapshot cleanup configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            cleanup=CleanupConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.data_dirs:
            raise ValueError("DATA_DIRS must list at least one data directory")

        if self.cleanup.initial_delay_seconds < 0:
            raise ValueError("SNAPSHOT_CLEANUP_INITIAL_DELAY_SECONDS must be >= 0")
        if self.cleanup.period_seconds <= 0:
            raise ValueError("SNAPSHOT_CLEANUP_PERIOD_SECONDS must be positive")
        if self.cleanup.delete_files_per_second < 0:
            raise ValueError("SNAPSHOT_DELETE_FILES_PER_SECOND must be >= 0")
        if self.cleanup.shutdown_timeout_seconds <= 0:
            raise ValueError("SNAPSHOT_SHUTDOWN_TIMEOUT_SECONDS must be positive")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        for data_dir in self.storage.data_dirs:
            if not os.path.isdir(data_dir):
                logger.warning(f"Data directory does not exist: {data_dir}. It will be skipped.")

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "data_dirs": list(self.storage.data_dirs),
                "cleanup_enabled": self.cleanup.enabled,
                "cleanup_initial_delay_seconds": self.cleanup.initial_delay_seconds,
                "cleanup_period_seconds": self.cleanup.period_seconds,
                "delete_files_per_second": self.cleanup.delete_files_per_second,
                "log_level": self.observability.log_level,
            },
        )
