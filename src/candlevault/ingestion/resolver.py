"""Resolution of seed symbols to data source identifiers."""

from __future__ import annotations

import logging

from ..exceptions import NotFoundError, ProviderError
from ..providers.base import DataProvider
from ..providers.models import Instrument
from .rate_gate import RateGate

logger = logging.getLogger(__name__)


class Resolver:
    """Look up an instrument's internal identifier with one gated search.

    A candidate matches when both its symbol and its listing exchange are
    exactly (case-sensitively) equal to the instrument's.  When several
    candidates match, the first in source order wins.
    """

    def __init__(self, provider: DataProvider, gate: RateGate) -> None:
        self.provider = provider
        self.gate = gate

    def resolve(self, instrument: Instrument) -> Instrument:
        """Return a copy of ``instrument`` with ``internal_id`` set.

        Raises:
            NotFoundError: If the search fails or nothing matches.
        """
        self.gate.acquire()
        try:
            candidates = self.provider.search_symbols(instrument.symbol)
        except ProviderError as exc:
            raise NotFoundError(instrument.symbol, str(exc)) from exc

        matches = [
            c
            for c in candidates
            if c.symbol == instrument.symbol and c.listing_exchange == instrument.exchange
        ]
        if not matches:
            raise NotFoundError(instrument.symbol)
        if len(matches) > 1:
            logger.debug(
                "%d candidates match %s on %s; using id %d",
                len(matches),
                instrument.symbol,
                instrument.exchange,
                matches[0].symbol_id,
            )
        return instrument.model_copy(update={"internal_id": matches[0].symbol_id})
