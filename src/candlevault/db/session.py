"""Database engine utilities.

This module centralizes construction of SQLAlchemy engines based on
environment configuration.  On SQLite, foreign key enforcement is
switched on for every connection so that a bar row can never reference
a missing instrument row.
"""

from __future__ import annotations

import os
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from ..config import DEFAULT_DATABASE_URL, ENV_DATABASE_URL


def resolve_database_url(url: Optional[str] = None) -> str:
    """Return ``url``, else ``$DATABASE_URL``, else the built-in default."""
    return url or os.getenv(ENV_DATABASE_URL) or DEFAULT_DATABASE_URL


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """Create a new SQLAlchemy engine.

    Args:
        url: A database URL.  If ``None``, ``DATABASE_URL`` or
            :data:`~candlevault.config.DEFAULT_DATABASE_URL` is used.
        **kwargs: Additional keyword arguments passed to
            ``sqlalchemy.create_engine``.

    Returns:
        A SQLAlchemy :class:`Engine`.
    """
    engine = create_engine(resolve_database_url(url), **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine
