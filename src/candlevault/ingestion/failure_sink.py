"""Consumer of the writer's error queue.

The sink logs every persistence error and owns the decision of whether
an error is fatal to the run.  Storage that cannot be opened is always
fatal.  Per-instrument write failures are logged and tolerated unless a
``max_failures`` threshold is configured and reached.  When the error
queue closes the sink raises the stop signal unconditionally, which is
how the orchestrator's shutdown wait is released; :attr:`fatal_error`
tells an abort apart from a normal finish.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..exceptions import PersistenceError, PersistenceUnavailableError
from .queues import ClosableQueue

logger = logging.getLogger(__name__)


class FailureSink:
    """Drain ``errors`` on a dedicated thread.

    Args:
        errors: The writer's error queue.
        stop_signal: Event raised when ingestion must stop.
        max_failures: Escalate to a stop once this many per-instrument
            failures were seen.  ``None`` never escalates.
    """

    def __init__(
        self,
        errors: ClosableQueue,
        stop_signal: threading.Event,
        max_failures: Optional[int] = None,
    ) -> None:
        if max_failures is not None and max_failures < 1:
            raise ValueError(f"max_failures must be at least 1, got {max_failures}")
        self.errors = errors
        self.stop_signal = stop_signal
        self.max_failures = max_failures
        self.failures = 0
        self.fatal_error: Optional[PersistenceError] = None
        self._thread = threading.Thread(target=self._run, name="candlevault-failures", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def handle(self, error: PersistenceError) -> None:
        """Log ``error`` and raise the stop signal if it is fatal."""
        logger.error("DB Error: %s", error)
        if isinstance(error, PersistenceUnavailableError):
            self._abort(error)
            return
        self.failures += 1
        if self.max_failures is not None and self.failures >= self.max_failures:
            self._abort(
                PersistenceError(
                    f"{self.failures} persistence failures reached the limit of {self.max_failures}"
                )
            )

    def _abort(self, error: PersistenceError) -> None:
        if self.fatal_error is None:
            self.fatal_error = error
            logger.critical("Stopping ingestion: %s", error)
        self.stop_signal.set()

    def _run(self) -> None:
        for error in self.errors:
            self.handle(error)
        logger.info("DB error logging stopped.")
        self.stop_signal.set()
