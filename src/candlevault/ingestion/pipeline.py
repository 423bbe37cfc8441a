"""Orchestration of the rate-limited ingestion pipeline.

:class:`IngestionPipeline` walks the seed universe in order.  Before each
instrument it renews an expiring session and honours the stop signal;
otherwise it resolves and fetches the instrument (both rate-gated, on the
calling thread) and hands the completed instrument to the
:class:`~candlevault.ingestion.writer.Writer` through a bounded queue.
Instrument-level failures are recorded and never end the loop.  A failed
session renewal or a fatal persistence error does end it; everything not
yet processed is then reported as not saved.  No instrument is touched
until the writer has confirmed that storage is usable.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Set

from sqlalchemy.engine import Engine

from ..config import HANDOFF_QUEUE_SIZE
from ..exceptions import (
    CandleVaultError,
    FetchFailedError,
    NotFoundError,
    SessionRenewalError,
)
from ..providers.models import Instrument
from .failure_sink import FailureSink
from .fetcher import Fetcher
from .queues import ClosableQueue
from .resolver import Resolver
from .writer import Writer

logger = logging.getLogger(__name__)


class SessionKeeper(Protocol):
    """Credential holder polled between instruments."""

    def expired(self) -> bool:
        """Return True when the credential must be renewed before the next call."""
        ...

    def renew(self) -> None:
        """Renew the credential; raise SessionRenewalError on failure."""
        ...


@dataclass
class IngestReport:
    """Outcome of one ingestion run.

    Attributes:
        total: Number of seed instruments.
        saved: Symbols committed to storage.
        not_saved: Instruments that were skipped, failed, or never processed.
        bars_written: Number of bar rows committed.
        aborted: True when the run stopped before the universe was exhausted.
        fatal_error: The error that aborted the run, if any.
    """

    total: int
    saved: List[str] = field(default_factory=list)
    not_saved: List[Instrument] = field(default_factory=list)
    bars_written: int = 0
    aborted: bool = False
    fatal_error: Optional[CandleVaultError] = None

    @property
    def not_saved_symbols(self) -> List[str]:
        return [instrument.symbol for instrument in self.not_saved]

    def log(self) -> None:
        if self.aborted:
            logger.error("Ingestion aborted: %s", self.fatal_error)
        logger.info(
            "Saved %d of %d symbols (%d candles)", len(self.saved), self.total, self.bars_written
        )
        logger.info("%d Symbols Not Saved", len(self.not_saved))
        for symbol in self.not_saved_symbols:
            logger.info(symbol)


class IngestionPipeline:
    """Drive resolve -> fetch -> enqueue over a universe of instruments.

    Args:
        resolver: Resolver sharing the rate gate with ``fetcher``.
        fetcher: Fetcher sharing the rate gate with ``resolver``.
        engine: Storage engine, handed to the writer and used by nothing else.
        session: Optional session keeper polled between instruments.
        queue_size: Capacity of the handoff queue.
        max_failures: Persistence failures tolerated before the run is
            aborted; ``None`` tolerates any number.
    """

    def __init__(
        self,
        resolver: Resolver,
        fetcher: Fetcher,
        engine: Engine,
        session: Optional[SessionKeeper] = None,
        queue_size: int = HANDOFF_QUEUE_SIZE,
        max_failures: Optional[int] = None,
    ) -> None:
        self.resolver = resolver
        self.fetcher = fetcher
        self.engine = engine
        self.session = session
        self.queue_size = queue_size
        self.max_failures = max_failures

    def run(self, instruments: Sequence[Instrument]) -> IngestReport:
        """Ingest ``instruments`` and return the run report.

        The report is also logged.  This method does not raise for
        instrument-level or fatal pipeline errors; check
        :attr:`IngestReport.aborted` instead.
        """
        instruments = list(instruments)
        report = IngestReport(total=len(instruments))
        stop_signal = threading.Event()
        handoff = ClosableQueue(maxsize=self.queue_size)
        errors = ClosableQueue()
        writer = Writer(self.engine, handoff, errors)
        sink = FailureSink(errors, stop_signal, max_failures=self.max_failures)
        writer.start()
        sink.start()

        try:
            writer.wait_ready()
            if writer.startup_error is not None:
                report.aborted = True
                report.not_saved.extend(instruments)
            else:
                self._ingest(instruments, report, handoff, stop_signal)
        finally:
            handoff.close()
            logger.info("Waiting for data to be saved...")
            writer.join()
            stop_signal.wait()
            sink.join()

        report.saved = list(writer.saved)
        report.bars_written = writer.bars_written
        report.not_saved.extend(writer.failed)
        if sink.fatal_error is not None:
            report.aborted = True
            if report.fatal_error is None:
                report.fatal_error = sink.fatal_error
        report.log()
        return report

    def _ingest(
        self,
        instruments: List[Instrument],
        report: IngestReport,
        handoff: ClosableQueue,
        stop_signal: threading.Event,
    ) -> None:
        enqueued_ids: Set[int] = set()
        for index, instrument in enumerate(instruments):
            if self.session is not None and self.session.expired():
                try:
                    self.session.renew()
                except SessionRenewalError as exc:
                    logger.error("Session renewal failed: %s", exc)
                    report.aborted = True
                    report.fatal_error = exc
                    report.not_saved.extend(instruments[index:])
                    return
            if stop_signal.is_set():
                report.aborted = True
                report.not_saved.extend(instruments[index:])
                return

            completed = self._process(instrument, enqueued_ids)
            if completed is None:
                report.not_saved.append(instrument)
                continue
            enqueued_ids.add(completed.internal_id)
            handoff.put(completed)

    def _process(self, instrument: Instrument, enqueued_ids: Set[int]) -> Optional[Instrument]:
        """Resolve and fetch one instrument; return None when it must be skipped."""
        try:
            resolved = self.resolver.resolve(instrument)
        except NotFoundError as exc:
            logger.warning("Could not find symbol %s: %s", instrument.symbol, exc)
            return None
        if resolved.internal_id in enqueued_ids:
            logger.warning(
                "Skipping %s: id %d was already ingested in this run",
                instrument.symbol,
                resolved.internal_id,
            )
            return None
        try:
            bars = self.fetcher.fetch(resolved.internal_id)
        except FetchFailedError as exc:
            logger.warning("Could not fetch candles for %s: %s", instrument.symbol, exc)
            return None
        logger.info("Retrieved %d candles for %s", len(bars), instrument.symbol)
        return resolved.model_copy(update={"series": bars})
