"""
Unit tests for service configuration.

Tests cover:
- Defaults
- Loading from environment variables
- Validation errors
"""

import pytest

from dbaas.snapkeeper.config import (
    CleanupConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)

ENV_VARS = (
    "DATA_DIRS",
    "SNAPSHOT_CLEANUP_ENABLED",
    "SNAPSHOT_CLEANUP_INITIAL_DELAY_SECONDS",
    "SNAPSHOT_CLEANUP_PERIOD_SECONDS",
    "SNAPSHOT_DELETE_FILES_PER_SECOND",
    "SNAPSHOT_SHUTDOWN_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Tests for loading configuration from the environment."""

    def test_defaults(self):
        cleanup = CleanupConfig.from_env()

        assert cleanup.enabled is True
        assert cleanup.initial_delay_seconds == 5
        assert cleanup.period_seconds == 60
        assert cleanup.delete_files_per_second == 0.0
        assert cleanup.shutdown_timeout_seconds == 60
        assert ObservabilityConfig.from_env().log_format == "json"

    def test_data_dirs_are_split(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIRS", f" {tmp_path / 'd1'} ,{tmp_path / 'd2'},, ")

        storage = StorageConfig.from_env()

        assert storage.data_dirs == (str(tmp_path / "d1"), str(tmp_path / "d2"))

    def test_cleanup_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATA_DIRS", str(tmp_path))
        monkeypatch.setenv("SNAPSHOT_CLEANUP_ENABLED", "False")
        monkeypatch.setenv("SNAPSHOT_CLEANUP_INITIAL_DELAY_SECONDS", "0")
        monkeypatch.setenv("SNAPSHOT_CLEANUP_PERIOD_SECONDS", "10")
        monkeypatch.setenv("SNAPSHOT_DELETE_FILES_PER_SECOND", "250.5")
        monkeypatch.setenv("SNAPSHOT_SHUTDOWN_TIMEOUT_SECONDS", "15")

        config = ServerConfig.from_env()

        assert config.storage.data_dirs == (str(tmp_path),)
        assert config.cleanup == CleanupConfig(
            enabled=False,
            initial_delay_seconds=0,
            period_seconds=10,
            delete_files_per_second=250.5,
            shutdown_timeout_seconds=15,
        )

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("SNAPSHOT_CLEANUP_PERIOD_SECONDS", "often")

        with pytest.raises(ValueError):
            ServerConfig.from_env()


class TestValidate:
    """Tests for ServerConfig.validate()."""

    def _config(self, tmp_path, **cleanup):
        return ServerConfig(
            storage=StorageConfig(data_dirs=(str(tmp_path),)),
            cleanup=CleanupConfig(**cleanup),
        )

    def test_valid(self, tmp_path):
        self._config(tmp_path).validate()

    @pytest.mark.parametrize(
        "cleanup, message",
        [
            ({"initial_delay_seconds": -1}, "INITIAL_DELAY"),
            ({"period_seconds": 0}, "PERIOD"),
            ({"delete_files_per_second": -5}, "FILES_PER_SECOND"),
            ({"shutdown_timeout_seconds": 0}, "SHUTDOWN_TIMEOUT"),
        ],
    )
    def test_invalid_cleanup(self, tmp_path, cleanup, message):
        with pytest.raises(ValueError, match=message):
            self._config(tmp_path, **cleanup).validate()

    def test_no_data_dirs(self):
        config = ServerConfig(storage=StorageConfig(data_dirs=()))

        with pytest.raises(ValueError, match="DATA_DIRS"):
            config.validate()

    def test_invalid_log_format(self, tmp_path):
        config = ServerConfig(
            storage=StorageConfig(data_dirs=(str(tmp_path),)),
            observability=ObservabilityConfig(log_format="xml"),
        )

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            config.validate()

    def test_missing_data_dir_only_warns(self, tmp_path, caplog):
        """A data directory that does not exist yet is not a startup error."""
        missing = tmp_path / "not-mounted"
        config = ServerConfig(storage=StorageConfig(data_dirs=(str(missing),)))

        config.validate()

        assert str(missing) in caplog.text
