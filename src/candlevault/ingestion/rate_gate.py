"""Fixed-interval throttle shared by every outbound data source call."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional


class RateGate:
    """Issue permits on one fixed schedule, ``interval`` seconds apart.

    The first permit is granted immediately; each later permit is due one
    interval after the previous one was scheduled.  Callers are served in
    the order they obtain the internal lock.  :meth:`acquire` never
    raises, it only delays.

    Args:
        interval: Minimum spacing between permits, in seconds.
        clock: Monotonic clock; injectable for tests.
        sleep: Sleep function; injectable for tests.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if interval < 0:
            raise ValueError(f"interval must be non-negative, got {interval}")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_permit: Optional[float] = None

    def acquire(self) -> None:
        """Block until the next permit is due, then consume it."""
        # The lock is held while sleeping so waiters queue behind the schedule.
        with self._lock:
            now = self._clock()
            if self._next_permit is not None and now < self._next_permit:
                self._sleep(self._next_permit - now)
                now = self._next_permit
            self._next_permit = now + self.interval
