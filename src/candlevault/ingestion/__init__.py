"""Rate-limited ingestion pipeline.

This package contains the stages that move an instrument from the seed
universe into storage: a shared :class:`RateGate`, the
:class:`Resolver` and :class:`Fetcher` that call the data source, the
single :class:`Writer` that owns the database, the :class:`FailureSink`
that watches write errors, and the :class:`IngestionPipeline` that
drives them.
"""

from __future__ import annotations

from .failure_sink import FailureSink
from .fetcher import Fetcher
from .pipeline import IngestReport, IngestionPipeline, SessionKeeper
from .queues import ClosableQueue
from .rate_gate import RateGate
from .resolver import Resolver
from .writer import Writer

__all__ = [
    "ClosableQueue",
    "FailureSink",
    "Fetcher",
    "IngestReport",
    "IngestionPipeline",
    "RateGate",
    "Resolver",
    "SessionKeeper",
    "Writer",
]
