"""Abstract base class for market data providers.

This module defines the interface that all data providers must implement.
Providers return normalized data structures defined in
:mod:`candlevault.providers.models` and signal every failure with
:class:`~candlevault.exceptions.ProviderError`.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List

from .models import Bar, SymbolMatch


class DataProvider(abc.ABC):
    """Interface for market data providers."""

    @abc.abstractmethod
    def search_symbols(self, prefix: str) -> List[SymbolMatch]:
        """Search the source for symbols starting with ``prefix``.

        Args:
            prefix: Ticker or ticker prefix to look up.

        Returns:
            Candidate matches in the order the source returned them.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_candles(
        self,
        symbol_id: int,
        start: datetime,
        end: datetime,
        interval: str,
    ) -> List[Bar]:
        """Fetch historical candles for one symbol identifier.

        Args:
            symbol_id: The source's internal identifier.
            start: Start of the requested period.
            end: End of the requested period.
            interval: Candle resolution in the source's vocabulary
                (e.g. ``"OneDay"``).

        Returns:
            A list of :class:`Bar` instances in the order returned by the
            source (chronological for Questrade).
        """
        raise NotImplementedError
