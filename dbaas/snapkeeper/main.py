"""
Snapshot lifecycle service - Main entry point.

This module runs snapshot cleanup as a standalone process beside a
storage node:
- Loads the snapshots present in every configured data directory
- Tracks the expiring ones
- Deletes them once they expire, until SIGTERM/SIGINT

Usage:
    python -m dbaas.snapkeeper.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - A corrupt snapshot directory or an unreadable data directory never
      prevents startup
    - Shutdown stops scheduling first, then waits (bounded) for the
      in-flight cleanup run

How to change safely:
    - Blocking work (directory walks, deletions) must stay off the event loop
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter

from .cleanup.rate_limiter import RateLimiter
from .cleanup.scheduler import CleanupExecutor
from .config import ServerConfig
from .errors import ShutdownTimeoutError
from .loader.loader import SnapshotLoader
from .manager import SnapshotManager

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


class SnapshotService:
    """Snapshot lifecycle service orchestrator.

    Attributes:
        config: Server configuration
        loader: Loader over the configured data directories
        manager: Snapshot manager running the cleanup

    Example:
        >>> service = SnapshotService()
        >>> await service.start()
        >>> # Service is running until request_shutdown()
        >>> await service.stop()
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        executor: CleanupExecutor | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Optional configuration (loaded from env if not provided)
            executor: Optional cleanup executor (a dedicated one by default)
        """
        self.config = config or ServerConfig.from_env()
        self._executor = executor or CleanupExecutor()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.loader: SnapshotLoader | None = None
        self.manager: SnapshotManager | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the service and block until shutdown is requested."""
        if self._running:
            logger.warning("Snapshot service already running")
            return

        logger.info("Starting snapshot service")
        self.config.log_config()

        try:
            cleanup = self.config.cleanup
            self.loader = SnapshotLoader(self.config.storage.data_dirs)
            self.manager = SnapshotManager(
                snapshot_loader=self.loader.load_snapshots,
                initial_delay_seconds=cleanup.initial_delay_seconds,
                cleanup_period_seconds=cleanup.period_seconds,
                executor=self._executor,
                rate_limiter=RateLimiter(cleanup.delete_files_per_second),
            )

            if cleanup.enabled:
                # Directory walk is blocking; keep it off the event loop
                await asyncio.get_running_loop().run_in_executor(None, self.manager.start)
            else:
                logger.info("Snapshot cleanup disabled")

            self._running = True
            logger.info("Snapshot service started successfully", extra=self.manager.stats)

            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Snapshot service startup failed: {e}", exc_info=True)
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the service gracefully.

        Raises:
            ShutdownTimeoutError: If the in-flight cleanup run does not finish in time
        """
        if self.manager is None:
            return

        logger.info("Stopping snapshot service")
        manager, self.manager = self.manager, None
        self._running = False
        await asyncio.get_running_loop().run_in_executor(
            None,
            manager.shutdown_and_wait,
            self.config.cleanup.shutdown_timeout_seconds,
        )
        logger.info("Snapshot service stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Create service
    service = SnapshotService(config)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        service.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run service
    exit_code = 0
    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        pass
    finally:
        try:
            loop.run_until_complete(service.stop())
        except ShutdownTimeoutError as e:
            logger.error(f"Snapshot service shutdown timed out: {e.message}")
            exit_code = 1
        loop.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
