"""Read-only queries over the CandleVault schema."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from .tables import candles_table, instruments_table


def count_rows(engine: Engine) -> Dict[str, int]:
    """Return instrument, candle and orphan-candle row counts.

    An orphan candle is a ``candlestick`` row whose ``id`` has no
    ``symbolids`` row; a healthy database always reports zero.
    """
    orphan_join = candles_table.outerjoin(
        instruments_table, candles_table.c.id == instruments_table.c.id
    )
    with engine.connect() as conn:
        instruments = conn.execute(
            select(func.count()).select_from(instruments_table)
        ).scalar_one()
        candles = conn.execute(select(func.count()).select_from(candles_table)).scalar_one()
        orphans = conn.execute(
            select(func.count())
            .select_from(orphan_join)
            .where(instruments_table.c.id.is_(None))
        ).scalar_one()
    return {"instruments": instruments, "candles": candles, "orphan_candles": orphans}


def find_instrument_id(engine: Engine, symbol: str, exchange: Optional[str] = None) -> Optional[int]:
    """Return the stored id for ``symbol`` (optionally on ``exchange``)."""
    stmt = select(instruments_table.c.id).where(instruments_table.c.symbol == symbol)
    if exchange is not None:
        stmt = stmt.where(instruments_table.c.exchange == exchange)
    with engine.connect() as conn:
        return conn.execute(stmt.order_by(instruments_table.c.id)).scalars().first()


def latest_candles(engine: Engine, internal_id: int, limit: int = 10) -> List[Dict[str, Any]]:
    """Return the ``limit`` most recent candles for an instrument, newest first.

    The ordering matches the ``i_candlestick`` index, so no sort is needed.
    """
    stmt = (
        select(candles_table)
        .where(candles_table.c.id == internal_id)
        .order_by(candles_table.c.starttime.desc(), candles_table.c.endtime.desc())
        .limit(limit)
    )
    with engine.connect() as conn:
        return [dict(row._mapping) for row in conn.execute(stmt)]
