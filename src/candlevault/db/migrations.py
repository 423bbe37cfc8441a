"""Database migration helpers for CandleVault.

This module runs Alembic migrations programmatically.  The primary
function, ``upgrade_head``, applies all pending migrations up to the
latest revision and works regardless of the current working directory.

Usage example::

    from candlevault.db.migrations import upgrade_head
    upgrade_head()  # apply migrations using DATABASE_URL environment
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from .session import resolve_database_url


def upgrade_head(database_url: Optional[str] = None) -> None:
    """Upgrade the database schema to the latest revision.

    Parameters
    ----------
    database_url : str or None, optional
        The SQLAlchemy database URL.  Falls back to ``DATABASE_URL`` and
        then to the built-in SQLite default.

    Raises
    ------
    FileNotFoundError
        If ``alembic.ini`` cannot be located.
    """
    # migrations.py lives at <repo>/src/candlevault/db/migrations.py, so the
    # repository root is three parents up: db -> candlevault -> src -> <repo>.
    project_root = Path(__file__).resolve().parents[3]
    alembic_ini_path = project_root / "alembic.ini"
    if not alembic_ini_path.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini_path}")
    cfg = Config(str(alembic_ini_path))
    script_location = project_root / "alembic"
    cfg.set_main_option("script_location", str(script_location))
    cfg.set_main_option("version_locations", str(script_location / "versions"))
    cfg.set_main_option("sqlalchemy.url", resolve_database_url(database_url))
    command.upgrade(cfg, "head")
