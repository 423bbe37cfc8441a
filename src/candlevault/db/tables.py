"""SQLAlchemy Core definitions of the CandleVault storage schema.

The two tables mirror the Alembic migration ``0001_create_schema``:
``symbolids`` holds one row per resolved instrument and ``candlestick``
holds its daily bars.  The composite index ``i_candlestick`` orders bars
by instrument ascending and time descending so that "latest N bars for an
instrument" is a plain range scan.
"""

from __future__ import annotations

from datetime import timezone
from typing import Any, Dict, List

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
)

from ..providers.models import Instrument

metadata = MetaData()

instruments_table = Table(
    "symbolids",
    metadata,
    Column("id", Integer, primary_key=True, nullable=False, autoincrement=False),
    Column("symbol", Text, nullable=False),
    Column("exchange", Text, nullable=False),
    Column("name", Text, nullable=False),
    Column("industry", Text, nullable=False),
    Column("subindustry", Text, nullable=False),
)

candles_table = Table(
    "candlestick",
    metadata,
    Column("id", Integer, ForeignKey("symbolids.id"), nullable=False),
    Column("starttime", DateTime(timezone=True), nullable=False),
    Column("endtime", DateTime(timezone=True), nullable=False),
    Column("open", Float, nullable=False),
    Column("close", Float, nullable=False),
    Column("high", Float, nullable=False),
    Column("low", Float, nullable=False),
    Column("volume", Integer, nullable=False),
)

Index(
    "i_candlestick",
    candles_table.c.id.asc(),
    candles_table.c.starttime.desc(),
    candles_table.c.endtime.desc(),
)


def instrument_row(instrument: Instrument) -> Dict[str, Any]:
    """Return the ``symbolids`` row for a resolved instrument."""
    return {
        "id": instrument.internal_id,
        "symbol": instrument.symbol,
        "exchange": instrument.exchange,
        "name": instrument.name,
        "industry": instrument.industry,
        "subindustry": instrument.subindustry,
    }


def candle_rows(instrument: Instrument) -> List[Dict[str, Any]]:
    """Return the ``candlestick`` rows for an instrument's series.

    Timestamps are stored in UTC.
    """
    return [
        {
            "id": instrument.internal_id,
            "starttime": bar.start.astimezone(timezone.utc),
            "endtime": bar.end.astimezone(timezone.utc),
            "open": bar.open,
            "close": bar.close,
            "high": bar.high,
            "low": bar.low,
            "volume": bar.volume,
        }
        for bar in instrument.series
    ]
