"""Command-line interface for CandleVault.

This module uses the :mod:`click` library to expose commands for schema
initialization, historical candle ingestion and simple inspection of the
resulting database.

The ingest command loads the seed universe, logs in to Questrade with the
refresh token from ``REFRESH_TOKEN``, and runs the rate-limited
ingestion pipeline.  Because Questrade refresh tokens are single use,
the rotated token is printed to stderr when the command finishes.
"""

from __future__ import annotations

import os
from typing import Optional

import click
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import (
    DEFAULT_UNIVERSE_PATH,
    ENV_PRACTICE,
    ENV_REFRESH_TOKEN,
    ENV_UNIVERSE,
    HANDOFF_QUEUE_SIZE,
    LOOKBACK_YEARS,
    RATE_LIMIT_INTERVAL_SECONDS,
)
from .db.queries import count_rows, find_instrument_id, latest_candles
from .db.session import get_engine
from .exceptions import ConfigError, SessionRenewalError
from .ingestion import Fetcher, IngestionPipeline, RateGate, Resolver
from .logs import configure_logging
from .providers.base import DataProvider
from .providers.questrade import QuestradeDataProvider, QuestradeSession
from .universe import load_universe

_TRUTHY = {"1", "true", "yes", "on"}


@click.group()
def cli() -> None:
    """CandleVault command-line interface."""
    pass


def _practice_from_env() -> bool:
    return os.getenv(ENV_PRACTICE, "").strip().lower() in _TRUTHY


def _build_session(practice: bool) -> QuestradeSession:
    """Construct and log in the Questrade session.

    Factored out so tests can monkeypatch it.

    Raises:
        click.ClickException: If no refresh token is configured or the
            login fails.
    """
    refresh_token = os.getenv(ENV_REFRESH_TOKEN)
    if not refresh_token:
        raise click.ClickException(f"{ENV_REFRESH_TOKEN} environment variable is not set")
    session = QuestradeSession(refresh_token, practice=practice)
    try:
        session.login()
    except SessionRenewalError as exc:
        raise click.ClickException(str(exc))
    return session


def _build_provider(session: QuestradeSession) -> DataProvider:
    """Construct the default data provider for the CLI."""
    return QuestradeDataProvider(session)


def _build_engine(database_url: Optional[str] = None) -> Engine:
    """Construct a SQLAlchemy engine from the option, DATABASE_URL or the default."""
    return get_engine(database_url)


@cli.command(name="db-init")
@click.option("--database-url", default=None, help="Database URL (default: DATABASE_URL or sqlite:///sp500.db).")
def db_init(database_url: Optional[str]) -> None:
    """Initialize the database schema using Alembic migrations."""
    from .db.migrations import upgrade_head  # imported here to keep CLI start-up light

    try:
        upgrade_head(database_url)
    except Exception as exc:
        raise click.ClickException(f"Database initialization failed: {exc}")
    click.echo("Database initialization complete.")


@cli.command()
@click.option(
    "--universe",
    "universe_path",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"JSON list of seed symbols (default: ${ENV_UNIVERSE} or {DEFAULT_UNIVERSE_PATH}).",
)
@click.option("--database-url", default=None, help="Database URL (default: DATABASE_URL or sqlite:///sp500.db).")
@click.option(
    "--interval",
    type=click.FloatRange(min=0.0),
    default=RATE_LIMIT_INTERVAL_SECONDS,
    show_default=True,
    help="Minimum seconds between calls to the data source.",
)
@click.option(
    "--lookback-years",
    type=click.IntRange(min=1),
    default=LOOKBACK_YEARS,
    show_default=True,
    help="Years of daily candles to fetch per symbol.",
)
@click.option(
    "--queue-size",
    type=click.IntRange(min=1),
    default=HANDOFF_QUEUE_SIZE,
    show_default=True,
    help="Capacity of the queue between fetching and writing.",
)
@click.option(
    "--max-failures",
    type=click.IntRange(min=1),
    default=None,
    help="Abort after this many database write failures (default: never).",
)
@click.option(
    "--practice/--live",
    default=None,
    help=f"Log in to the practice or live server (default: ${ENV_PRACTICE}, else live).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write logs to this file.")
def ingest(
    universe_path: Optional[str],
    database_url: Optional[str],
    interval: float,
    lookback_years: int,
    queue_size: int,
    max_failures: Optional[int],
    practice: Optional[bool],
    log_level: str,
    log_file: Optional[str],
) -> None:
    """Fetch daily candles for every seed symbol and store them.

    Examples::

        REFRESH_TOKEN=... python -m candlevault ingest --universe sp500.json

    Symbols that cannot be resolved or fetched are skipped and listed at
    the end.  The command exits non-zero when the run was aborted by a
    failed login renewal or an unusable database.
    """
    configure_logging(log_level, log_file)
    path = universe_path or os.getenv(ENV_UNIVERSE) or DEFAULT_UNIVERSE_PATH
    try:
        instruments = load_universe(path)
    except ConfigError as exc:
        raise click.UsageError(str(exc))

    if practice is None:
        practice = _practice_from_env()
    session = _build_session(practice)
    try:
        provider = _build_provider(session)
        engine = _build_engine(database_url)
        gate = RateGate(interval)
        pipeline = IngestionPipeline(
            resolver=Resolver(provider, gate),
            fetcher=Fetcher(provider, gate, lookback_years=lookback_years),
            engine=engine,
            session=session,
            queue_size=queue_size,
            max_failures=max_failures,
        )
        report = pipeline.run(instruments)
    finally:
        # The previous refresh token is consumed; always hand out the new one.
        click.echo(f"export {ENV_REFRESH_TOKEN}={session.refresh_token}", err=True)

    click.echo(
        f"Saved {len(report.saved)} of {report.total} symbols ({report.bars_written} candles)"
    )
    if report.not_saved:
        click.echo(f"{len(report.not_saved)} not saved: " + ", ".join(report.not_saved_symbols))
    if report.aborted:
        raise click.ClickException(f"Ingestion aborted: {report.fatal_error}")


@cli.command()
@click.option("--database-url", default=None, help="Database URL (default: DATABASE_URL or sqlite:///sp500.db).")
def stats(database_url: Optional[str]) -> None:
    """Print row counts and the number of candles without an instrument row."""
    engine = _build_engine(database_url)
    try:
        counts = count_rows(engine)
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Could not read database: {exc}")
    click.echo(
        f"instruments={counts['instruments']} candles={counts['candles']} "
        f"orphan_candles={counts['orphan_candles']}"
    )


@cli.command()
@click.argument("symbol")
@click.option("--exchange", default=None, help="Disambiguate symbols listed on several exchanges.")
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True)
@click.option("--database-url", default=None, help="Database URL (default: DATABASE_URL or sqlite:///sp500.db).")
def latest(symbol: str, exchange: Optional[str], limit: int, database_url: Optional[str]) -> None:
    """Print the most recent stored candles for SYMBOL, newest first."""
    engine = _build_engine(database_url)
    try:
        internal_id = find_instrument_id(engine, symbol, exchange)
        if internal_id is None:
            raise click.ClickException(f"{symbol} is not in the database")
        rows = latest_candles(engine, internal_id, limit)
    except SQLAlchemyError as exc:
        raise click.ClickException(f"Could not read database: {exc}")
    for row in rows:
        click.echo(
            f"{row['starttime'].date().isoformat()} open={row['open']:.2f} high={row['high']:.2f} "
            f"low={row['low']:.2f} close={row['close']:.2f} volume={row['volume']}"
        )
