"""
Configuration constants for the CandleVault project.

This module centralises configuration values that are used across the
application.  New values should be added here deliberately.  Runtime
overrides come from environment variables (read by the CLI and the
database helpers) and from CLI options, in that order of precedence.
"""

from typing import Final

PROJECT_NAME: Final[str] = "CandleVault"

# Storage used when neither ``--database-url`` nor ``DATABASE_URL`` is set.
DEFAULT_DATABASE_URL: Final[str] = "sqlite:///sp500.db"

# JSON list of seed instruments (symbol, name, industry, subindustry,
# exchange).  ``CANDLEVAULT_UNIVERSE`` overrides it.
DEFAULT_UNIVERSE_PATH: Final[str] = "sp500.json"

# Questrade limits market calls to 5 per second and 15 000 per hour.  A
# 250 ms spacing gives 4 calls per second, i.e. 14 400 calls per hour.
RATE_LIMIT_INTERVAL_SECONDS: Final[float] = 0.25

# Length of the trailing history window requested for every instrument.
LOOKBACK_YEARS: Final[int] = 5

# Candle resolution as named by the Questrade API.
CANDLE_INTERVAL: Final[str] = "OneDay"

# Capacity of the handoff queue between the orchestrator and the writer.
HANDOFF_QUEUE_SIZE: Final[int] = 16

# Access tokens are renewed this many seconds before they actually expire
# so that an in-flight call never carries a stale token.
SESSION_RENEW_MARGIN_SECONDS: Final[int] = 60

# Environment variable names.
ENV_DATABASE_URL: Final[str] = "DATABASE_URL"
ENV_REFRESH_TOKEN: Final[str] = "REFRESH_TOKEN"
ENV_PRACTICE: Final[str] = "QUESTRADE_PRACTICE"
ENV_UNIVERSE: Final[str] = "CANDLEVAULT_UNIVERSE"

__all__ = [
    "PROJECT_NAME",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_UNIVERSE_PATH",
    "RATE_LIMIT_INTERVAL_SECONDS",
    "LOOKBACK_YEARS",
    "CANDLE_INTERVAL",
    "HANDOFF_QUEUE_SIZE",
    "SESSION_RENEW_MARGIN_SECONDS",
    "ENV_DATABASE_URL",
    "ENV_REFRESH_TOKEN",
    "ENV_PRACTICE",
    "ENV_UNIVERSE",
]
