"""Retrieval of the trailing daily candle window for a resolved identifier."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from ..config import CANDLE_INTERVAL, LOOKBACK_YEARS
from ..exceptions import FetchFailedError, ProviderError
from ..providers.base import DataProvider
from ..providers.models import Bar
from .rate_gate import RateGate


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def years_before(dt: datetime, years: int) -> datetime:
    """Return ``dt`` moved back by whole calendar years.

    February 29 maps to March 1 when the target year is not a leap year.
    """
    try:
        return dt.replace(year=dt.year - years)
    except ValueError:
        return dt.replace(year=dt.year - years, month=3, day=1)


class Fetcher:
    """Fetch ``lookback_years`` of candles ending at call time.

    Args:
        provider: Data source to query.
        gate: Shared rate gate; one permit is consumed per fetch.
        lookback_years: Length of the trailing window.
        interval: Candle resolution in the source's vocabulary.
        now: Clock returning an aware "now"; injectable for tests.
    """

    def __init__(
        self,
        provider: DataProvider,
        gate: RateGate,
        lookback_years: int = LOOKBACK_YEARS,
        interval: str = CANDLE_INTERVAL,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if lookback_years <= 0:
            raise ValueError(f"lookback_years must be positive, got {lookback_years}")
        self.provider = provider
        self.gate = gate
        self.lookback_years = lookback_years
        self.interval = interval
        self._now = now or _utcnow

    def window(self) -> Tuple[datetime, datetime]:
        end = self._now()
        return years_before(end, self.lookback_years), end

    def fetch(self, internal_id: int) -> List[Bar]:
        """Return the candles for ``internal_id`` in source order.

        Raises:
            FetchFailedError: If the data source call fails.
        """
        self.gate.acquire()
        # The window is evaluated after the permit so "now" is the call time.
        start, end = self.window()
        try:
            return self.provider.get_candles(internal_id, start, end, self.interval)
        except ProviderError as exc:
            raise FetchFailedError(internal_id, str(exc)) from exc
