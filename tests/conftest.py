"""Shared stubs for the CandleVault test-suite.

No network access is used: providers and sessions are in-memory stand-ins
that record the calls made against them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import pytest

from candlevault.db.session import get_engine
from candlevault.exceptions import ProviderError, SessionRenewalError
from candlevault.providers.base import DataProvider
from candlevault.providers.models import Bar, Instrument, SymbolMatch


def make_bars(count: int, first_day: datetime = datetime(2021, 1, 4, tzinfo=timezone.utc)) -> List[Bar]:
    """Return ``count`` consecutive valid daily bars starting at ``first_day``."""
    bars = []
    for i in range(count):
        start = first_day + timedelta(days=i)
        bars.append(
            Bar(
                start=start,
                end=start + timedelta(days=1),
                open=100.0 + i,
                close=101.0 + i,
                high=102.0 + i,
                low=99.0 + i,
                volume=1000 * (i + 1),
            )
        )
    return bars


def make_instrument(symbol: str, exchange: str = "NASDAQ") -> Instrument:
    return Instrument(
        symbol=symbol,
        exchange=exchange,
        name=f"{symbol} Inc.",
        industry="Information Technology",
        subindustry="Technology Hardware",
    )


class StubProvider(DataProvider):
    """In-memory provider keyed by symbol and by internal id."""

    def __init__(
        self,
        listings: Optional[Dict[str, List[SymbolMatch]]] = None,
        candles: Optional[Dict[int, List[Bar]]] = None,
        failing_searches: Iterable[str] = (),
        failing_fetches: Iterable[int] = (),
        events: Optional[List[str]] = None,
    ) -> None:
        self.listings = listings or {}
        self.candles = candles or {}
        self.failing_searches: Set[str] = set(failing_searches)
        self.failing_fetches: Set[int] = set(failing_fetches)
        self.events = events if events is not None else []
        self.candle_requests: List[tuple] = []

    def search_symbols(self, prefix: str) -> List[SymbolMatch]:
        self.events.append(f"search:{prefix}")
        if prefix in self.failing_searches:
            raise ProviderError(f"search for {prefix} failed")
        return list(self.listings.get(prefix, []))

    def get_candles(self, symbol_id, start, end, interval) -> List[Bar]:
        self.events.append(f"candles:{symbol_id}")
        self.candle_requests.append((symbol_id, start, end, interval))
        if symbol_id in self.failing_fetches:
            raise ProviderError(f"candles for {symbol_id} failed")
        return list(self.candles.get(symbol_id, []))


class StubSession:
    """Session keeper whose expiry is scripted by poll number (0-based)."""

    def __init__(
        self,
        expire_on_polls: Iterable[int] = (),
        fail_renewal: bool = False,
        events: Optional[List[str]] = None,
    ) -> None:
        self.expire_on_polls = set(expire_on_polls)
        self.fail_renewal = fail_renewal
        self.events = events if events is not None else []
        self.polls = 0
        self.renewals = 0
        self.refresh_token = "rotated-token"

    def expired(self) -> bool:
        poll = self.polls
        self.polls += 1
        return poll in self.expire_on_polls

    def renew(self) -> None:
        self.events.append("renew")
        if self.fail_renewal:
            raise SessionRenewalError("refresh token rejected")
        self.renewals += 1


class CountingGate:
    """Rate gate stand-in that never waits and counts permits."""

    def __init__(self) -> None:
        self.acquired = 0

    def acquire(self) -> None:
        self.acquired += 1


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'candles.db'}"


@pytest.fixture
def engine(db_url: str):
    engine = get_engine(db_url)
    yield engine
    engine.dispose()


@pytest.fixture
def restore_logging():
    """Undo root-logger changes made by CLI runs and Alembic's fileConfig."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
