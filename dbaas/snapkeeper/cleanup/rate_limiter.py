"""
Throughput limiter for snapshot file removal.

One limiter is shared by every snapshot deletion of a process so that
evicting many snapshots at once cannot saturate the disks serving reads
and writes.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Thread-safe smooth rate limiter.

    Permits are handed out at a steady rate; a caller that asks for permits
    ahead of schedule sleeps until its slot. The limiter only throttles, it
    never rejects.

    Attributes:
        permits_per_second: Sustained rate (0 means unlimited)

    Example:
        >>> limiter = RateLimiter(permits_per_second=100)
        >>> limiter.acquire()  # one permit per removed file
    """

    def __init__(
        self,
        permits_per_second: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if permits_per_second < 0:
            raise ValueError(f"permits_per_second must be >= 0, got {permits_per_second}")
        self._permits_per_second = float(permits_per_second)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_free = clock()

    @property
    def permits_per_second(self) -> float:
        return self._permits_per_second

    @property
    def unlimited(self) -> bool:
        return self._permits_per_second == 0

    def set_rate(self, permits_per_second: float) -> None:
        if permits_per_second < 0:
            raise ValueError(f"permits_per_second must be >= 0, got {permits_per_second}")
        with self._lock:
            self._permits_per_second = float(permits_per_second)
            self._next_free = self._clock()

    def acquire(self, permits: int = 1) -> float:
        """Block until the requested permits are available.

        Args:
            permits: Number of permits to take

        Returns:
            Seconds spent waiting
        """
        if permits < 1:
            raise ValueError(f"permits must be positive, got {permits}")

        # Reserve a slot under the lock, sleep outside it
        with self._lock:
            if self.unlimited:
                return 0.0
            now = self._clock()
            wait = max(0.0, self._next_free - now)
            self._next_free = max(self._next_free, now) + permits / self._permits_per_second

        if wait > 0:
            logger.debug("Rate limited, sleeping %.3fs", wait)
            self._sleep(wait)
        return wait
