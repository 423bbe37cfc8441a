"""Pydantic models for instruments and normalized provider outputs.

These classes define the canonical representation of seed instruments,
symbol search candidates and candlestick bars.  Bars are frozen and
validate their OHLC invariants on construction, so any bar that reaches
the writer is internally consistent.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Bar(BaseModel):
    """Represents a single candlestick over ``[start, end)``.

    Attributes:
        start: Start of the interval as an aware datetime.
        end: End of the interval as an aware datetime.
        open: The opening price.
        close: The closing price.
        high: The highest price.
        low: The lowest price.
        volume: The traded volume.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    open: float
    close: float
    high: float
    low: float
    volume: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_ohlc(self) -> "Bar":
        if self.start >= self.end:
            raise ValueError(f"bar start {self.start} is not before end {self.end}")
        if not (self.low <= self.open <= self.high):
            raise ValueError(
                f"open {self.open} outside low/high range [{self.low}, {self.high}]"
            )
        if not (self.low <= self.close <= self.high):
            raise ValueError(
                f"close {self.close} outside low/high range [{self.low}, {self.high}]"
            )
        return self


class SymbolMatch(BaseModel):
    """A candidate returned by a symbol search.

    Attributes:
        symbol: The ticker as listed by the source (e.g. "AAPL").
        symbol_id: The source's internal identifier.
        listing_exchange: Exchange code (e.g. "NASDAQ").
        description: Free-text description, if provided.
    """

    symbol: str
    symbol_id: int
    listing_exchange: str
    description: Optional[str] = None


class Instrument(BaseModel):
    """One tradable symbol with its classification and fetched history.

    ``internal_id`` stays ``None`` until the resolver succeeds; ``series``
    stays empty until the fetcher succeeds.  Pipeline stages never mutate
    an instrument in place: each returns an updated copy.
    """

    symbol: str = Field(min_length=1)
    exchange: str = Field(min_length=1)
    name: str
    industry: str
    subindustry: str
    internal_id: Optional[int] = None
    series: List[Bar] = Field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.internal_id is not None
