"""Initial schema for the CandleVault database.

Revision ID: 0001_create_schema
Revises:
Create Date: 2026-10-19

This migration creates the instrument table ``symbolids``, the bar table
``candlestick`` and the composite index used for latest-bars scans.

``ingest`` creates the same schema on an empty store, so objects that
already exist are adopted rather than created again.  Running ``db-init``
on such a store only records this revision.
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the instrument and candlestick tables if they are missing."""
    inspector = sa.inspect(op.get_bind())

    if not inspector.has_table("symbolids"):
        op.create_table(
            "symbolids",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False, autoincrement=False),
            sa.Column("symbol", sa.Text(), nullable=False),
            sa.Column("exchange", sa.Text(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("industry", sa.Text(), nullable=False),
            sa.Column("subindustry", sa.Text(), nullable=False),
        )

    if not inspector.has_table("candlestick"):
        op.create_table(
            "candlestick",
            sa.Column("id", sa.Integer(), sa.ForeignKey("symbolids.id"), nullable=False),
            sa.Column("starttime", sa.DateTime(timezone=True), nullable=False),
            sa.Column("endtime", sa.DateTime(timezone=True), nullable=False),
            sa.Column("open", sa.Float(), nullable=False),
            sa.Column("close", sa.Float(), nullable=False),
            sa.Column("high", sa.Float(), nullable=False),
            sa.Column("low", sa.Float(), nullable=False),
            sa.Column("volume", sa.Integer(), nullable=False),
        )
        existing_indexes = set()
    else:
        existing_indexes = {ix["name"] for ix in inspector.get_indexes("candlestick")}

    if "i_candlestick" not in existing_indexes:
        op.create_index(
            "i_candlestick",
            "candlestick",
            [sa.text("id ASC"), sa.text("starttime DESC"), sa.text("endtime DESC")],
        )


def downgrade() -> None:
    """Drop the schema created by :func:`upgrade`."""
    op.drop_index("i_candlestick", table_name="candlestick")
    op.drop_table("candlestick")
    op.drop_table("symbolids")
