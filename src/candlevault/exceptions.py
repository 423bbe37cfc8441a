"""CandleVault exception hierarchy.

All project-specific exceptions derive from :class:`CandleVaultError` so
callers can catch them uniformly.  Errors are grouped by the pipeline
stage that raises them; whether an error is fatal to a run is decided by
the stage boundaries in :mod:`candlevault.ingestion.pipeline`, not by the
exception itself.
"""

from __future__ import annotations

from typing import Optional


class CandleVaultError(Exception):
    """Base class for CandleVault exceptions."""


class ConfigError(CandleVaultError):
    """Raised when configuration files or parameters are invalid."""


class ProviderError(CandleVaultError):
    """Raised when a call to the external data source fails.

    Covers transport errors, non-success HTTP statuses and undecodable
    responses.  Pipeline stages translate it into their own error type.
    """


class NotFoundError(CandleVaultError):
    """Raised when a symbol cannot be resolved to a source identifier."""

    def __init__(self, symbol: str, detail: Optional[str] = None) -> None:
        self.symbol = symbol
        self.detail = detail
        message = f"Symbol not found: {symbol}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FetchFailedError(CandleVaultError):
    """Raised when bar retrieval for a resolved identifier fails."""

    def __init__(self, internal_id: int, detail: str) -> None:
        self.internal_id = internal_id
        self.detail = detail
        super().__init__(f"Failed to fetch candles for id {internal_id}: {detail}")


class PersistenceError(CandleVaultError):
    """Raised when writing an instrument and its bars fails.

    ``symbol`` is ``None`` for failures that are not tied to a single
    instrument.
    """

    def __init__(self, message: str, symbol: Optional[str] = None) -> None:
        self.symbol = symbol
        super().__init__(message)


class PersistenceUnavailableError(PersistenceError):
    """Raised when storage cannot be opened or its schema cannot be created."""


class SessionRenewalError(CandleVaultError):
    """Raised when the data source session cannot be (re)established."""


__all__ = [
    "CandleVaultError",
    "ConfigError",
    "ProviderError",
    "NotFoundError",
    "FetchFailedError",
    "PersistenceError",
    "PersistenceUnavailableError",
    "SessionRenewalError",
]
