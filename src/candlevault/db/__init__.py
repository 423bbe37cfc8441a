"""Database helpers: table definitions, engine construction and migrations."""

from __future__ import annotations
