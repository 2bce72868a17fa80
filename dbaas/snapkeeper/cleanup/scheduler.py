"""
Periodic task facility for snapshot cleanup.

CleanupExecutor runs cancellable periodic tasks on an APScheduler
BackgroundScheduler with a single worker thread. The process normally
shares one executor (get_cleanup_executor()), mirroring a shared
scheduled-executor pool.

Each run is a one-shot 'date' job. When a run returns, the next one is
armed period_seconds later, so the period is the delay between the end of
one run and the start of the next.

Invariants:
    - Runs of the same task never overlap
    - The gap between the end of a run and the next start is >= period_seconds
    - ScheduledTask.cancel() never waits for an in-flight run
    - A run that has not started when the executor shuts down is skipped
    - Shutdown is terminal; a shut-down executor rejects new tasks

How to change safely:
    - Anything scheduled here runs on the worker thread; guard shared state
    - Keep cancel() non-blocking, callers hold locks while cancelling
    - Lock order is executor state, then task; never the reverse
"""

from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.executors.pool import ThreadPoolExecutor  # type: ignore[import-untyped]
from apscheduler.job import Job  # type: ignore[import-untyped]
from apscheduler.jobstores.base import JobLookupError  # type: ignore[import-untyped]
from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore[import-untyped]

from ..errors import SchedulerShutdownError, ShutdownTimeoutError

logger = logging.getLogger(__name__)

_default_executor: CleanupExecutor | None = None
_default_executor_lock = threading.Lock()


class ScheduledTask:
    """Handle of one periodic task.

    Only the component that scheduled the task holds the handle.

    Attributes:
        name: Task name used in logs
        period_seconds: Delay between the end of a run and the next start
    """

    def __init__(self, fn: Callable[[], object], name: str, period_seconds: float) -> None:
        self.fn = fn
        self.name = name
        self.period_seconds = period_seconds
        self._job: Job | None = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def job_id(self) -> str | None:
        """APScheduler id of the next pending run, if any."""
        job = self._job
        return job.id if job is not None else None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        """Whether further runs will be started."""
        return not self._cancelled

    def cancel(self) -> bool:
        """Stop scheduling further runs.

        An in-flight run is not interrupted and not waited for.

        Returns:
            True if this call cancelled the task, False if it already was
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            job = self._job

        if job is not None:
            try:
                job.remove()
            except JobLookupError:
                # Run already fired, or the executor shut down and dropped it
                logger.debug(f"Job already removed: {job.id}", extra={"job_id": job.id})
        logger.debug(f"Cancelled periodic task {self.name}", extra={"task": self.name})
        return True


class CleanupExecutor:
    """Runs periodic cleanup tasks on a background thread.

    Attributes:
        name: Executor name used in logs and job ids

    Example:
        >>> executor = CleanupExecutor()
        >>> task = executor.schedule_with_fixed_delay(cleanup, 5, 60)
        >>> task.cancel()
        >>> executor.shutdown_and_wait(timeout_seconds=10)
    """

    def __init__(self, name: str = "SnapshotCleanup") -> None:
        self.name = name
        self._scheduler = BackgroundScheduler(
            timezone="UTC",
            executors={"default": ThreadPoolExecutor(max_workers=1)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": None,
            },
        )
        self._state = threading.Condition()
        self._in_flight = 0
        self._shut_down = False
        self._job_ids = itertools.count(1)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    @property
    def in_flight(self) -> int:
        """Number of task runs currently executing."""
        with self._state:
            return self._in_flight

    def schedule_with_fixed_delay(
        self,
        fn: Callable[[], object],
        initial_delay_seconds: float,
        period_seconds: float,
        name: str | None = None,
    ) -> ScheduledTask:
        """Run fn after initial_delay_seconds, then period_seconds after each run ends.

        A run that raises is logged by APScheduler and the task keeps its
        schedule.

        Args:
            fn: Task body, called on the worker thread
            initial_delay_seconds: Delay before the first run
            period_seconds: Delay between the end of a run and the next start
            name: Task name for logs (defaults to fn's name)

        Returns:
            Handle used to cancel the task

        Raises:
            SchedulerShutdownError: If the executor has been shut down
        """
        if initial_delay_seconds < 0:
            raise ValueError(f"initial_delay_seconds must be >= 0, got {initial_delay_seconds}")
        if period_seconds <= 0:
            raise ValueError(f"period_seconds must be positive, got {period_seconds}")

        task = ScheduledTask(fn, name or getattr(fn, "__name__", "task"), period_seconds)
        with self._state:
            if self._shut_down:
                raise SchedulerShutdownError(self.name)
            if not self._scheduler.running:
                self._scheduler.start()
                logger.debug(f"Started cleanup executor {self.name}")
            self._arm(task, initial_delay_seconds)

        logger.info(
            f"Scheduled {task.name} with initial_delay_seconds={initial_delay_seconds} "
            f"and period_seconds={period_seconds}",
            extra={"executor": self.name, "task": task.name},
        )
        return task

    def shutdown_and_wait(self, timeout_seconds: float) -> None:
        """Stop the executor and wait for in-flight runs to return.

        Args:
            timeout_seconds: Maximum time to wait

        Raises:
            ShutdownTimeoutError: If runs are still executing after the timeout
        """
        with self._state:
            self._shut_down = True
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
                logger.info(f"Shutting down cleanup executor {self.name}")

            drained = self._state.wait_for(lambda: self._in_flight == 0, timeout=timeout_seconds)
            if not drained:
                logger.error(
                    f"Cleanup executor {self.name} did not finish within {timeout_seconds}s",
                    extra={"executor": self.name, "in_flight": self._in_flight},
                )
                raise ShutdownTimeoutError(timeout_seconds, self._in_flight)

    def _arm(self, task: ScheduledTask, delay_seconds: float) -> None:
        # Caller holds self._state
        with task._lock:
            if task._cancelled:
                return
            task._job = self._scheduler.add_job(
                func=self._run,
                trigger="date",
                run_date=datetime.now(timezone.utc) + timedelta(seconds=delay_seconds),
                args=(task,),
                id=f"{self.name}_{task.name}_{next(self._job_ids)}",
                name=task.name,
            )

    def _run(self, task: ScheduledTask) -> None:
        with self._state:
            if self._shut_down or task.cancelled:
                return
            self._in_flight += 1
        try:
            task.fn()
        finally:
            with self._state:
                self._in_flight -= 1
                self._state.notify_all()
                if not self._shut_down:
                    self._arm(task, task.period_seconds)


def get_cleanup_executor() -> CleanupExecutor:
    """Get the process-wide cleanup executor.

    Creates one if none exists or the previous one was shut down.
    """
    global _default_executor
    with _default_executor_lock:
        if _default_executor is None or _default_executor.is_shut_down:
            _default_executor = CleanupExecutor()
        return _default_executor


def reset_cleanup_executor() -> None:
    """Drop the process-wide executor (for testing only)."""
    global _default_executor
    with _default_executor_lock:
        _default_executor = None
