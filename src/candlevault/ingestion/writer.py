"""Single-writer persistence stage.

The :class:`Writer` is the only component that mutates storage.  It runs
on its own thread, drains the handoff queue of completed instruments and
writes each instrument together with all of its bars in one transaction:
either every row for the instrument is committed or none is.  Failures
are reported on the error queue and never stop the drain, so the
producer side of the handoff can always make progress.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..db.tables import (
    candle_rows,
    candles_table,
    instrument_row,
    instruments_table,
    metadata,
)
from ..exceptions import PersistenceError, PersistenceUnavailableError
from ..providers.models import Instrument
from .queues import ClosableQueue

logger = logging.getLogger(__name__)


class Writer:
    """Drain ``handoff`` into the database behind ``engine``.

    Attributes:
        saved: Symbols written successfully, in write order.
        failed: Instruments that could not be written.
        bars_written: Total number of bar rows committed.
    """

    def __init__(self, engine: Engine, handoff: ClosableQueue, errors: ClosableQueue) -> None:
        self.engine = engine
        self.handoff = handoff
        self.errors = errors
        self.saved: List[str] = []
        self.failed: List[Instrument] = []
        self.bars_written = 0
        self.startup_error: Optional[PersistenceUnavailableError] = None
        self._ready = threading.Event()
        self._instrument_insert = None
        self._candle_insert = None
        self._thread = threading.Thread(target=self._run, name="candlevault-writer", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the start-up schema check has finished.

        Returns False on timeout.  After a True return, :attr:`startup_error`
        tells whether storage is usable.
        """
        return self._ready.wait(timeout)

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def prepare(self) -> None:
        """Create the schema if needed and build the reusable insert statements."""
        metadata.create_all(self.engine)
        self._instrument_insert = instruments_table.insert()
        self._candle_insert = candles_table.insert()

    def write(self, instrument: Instrument) -> bool:
        """Write one instrument and its bars atomically.

        Returns:
            True if the transaction committed, False if it was rolled back.
            Failures are reported on the error queue.
        """
        if self._instrument_insert is None:
            self.prepare()
        rows = candle_rows(instrument)
        try:
            # engine.begin() commits on success and rolls back on any error.
            with self.engine.begin() as conn:
                conn.execute(self._instrument_insert, instrument_row(instrument))
                if rows:
                    conn.execute(self._candle_insert, rows)
        except SQLAlchemyError as exc:
            self.failed.append(instrument)
            self.errors.put(
                PersistenceError(
                    f"Could not save {instrument.symbol} (id {instrument.internal_id}): {exc}",
                    symbol=instrument.symbol,
                )
            )
            return False
        self.saved.append(instrument.symbol)
        self.bars_written += len(rows)
        logger.debug("Saved %d candles for %s", len(rows), instrument.symbol)
        return True

    def _discard_remaining(self) -> None:
        for instrument in self.handoff:
            self.failed.append(instrument)
            logger.warning("Storage unavailable, dropping %s", instrument.symbol)

    def _run(self) -> None:
        try:
            try:
                self.prepare()
            except SQLAlchemyError as exc:
                self.startup_error = PersistenceUnavailableError(f"Storage unavailable: {exc}")
                self.errors.put(self.startup_error)
            finally:
                self._ready.set()
            if self.startup_error is not None:
                self._discard_remaining()
                return
            current: Optional[Instrument] = None
            try:
                for instrument in self.handoff:
                    current = instrument
                    self.write(instrument)
                    current = None
            except Exception as exc:
                logger.exception("Writer stopped unexpectedly")
                if current is not None:
                    self.failed.append(current)
                self.errors.put(PersistenceUnavailableError(f"Writer stopped unexpectedly: {exc}"))
                self._discard_remaining()
        finally:
            self._ready.set()
            self.errors.close()
