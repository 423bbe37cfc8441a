"""Top-level package for CandleVault.

This package provides a command-line interface via :mod:`candlevault.cli`,
data providers in :mod:`candlevault.providers`, database utilities in
:mod:`candlevault.db`, and the rate-limited ingestion pipeline in
:mod:`candlevault.ingestion`.
"""

__all__ = [
    "cli",
    "providers",
    "db",
    "ingestion",
]
