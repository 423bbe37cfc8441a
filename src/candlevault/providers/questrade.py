"""Questrade market data provider implementation.

This module implements the :class:`DataProvider` interface for the
Questrade REST API (version 1), together with the OAuth session that the
ingestion pipeline polls and renews between instruments.  Responses are
normalized into pydantic models defined in
:mod:`candlevault.providers.models`.

Environment variables (read by the CLI, not by this module):
    REFRESH_TOKEN: A Questrade refresh token.  Refresh tokens are single
        use; the rotated token is available as
        :attr:`QuestradeSession.refresh_token` after each login.
    QUESTRADE_PRACTICE: Any truthy value selects the practice login server.

Authentication failures during login raise
:class:`~candlevault.exceptions.SessionRenewalError`.  Every other
failure raises :class:`~candlevault.exceptions.ProviderError`.  Transient
errors such as rate limits (HTTP 429) and server errors (5xx) are retried
with exponential backoff by the underlying requests session.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import SESSION_RENEW_MARGIN_SECONDS
from ..exceptions import ProviderError, SessionRenewalError
from .base import DataProvider
from .models import Bar, SymbolMatch

logger = logging.getLogger(__name__)

LIVE_LOGIN_URL = "https://login.questrade.com"
PRACTICE_LOGIN_URL = "https://practicelogin.questrade.com"


def _parse_timestamp(ts_str: str) -> datetime:
    """Parse an ISO 8601 timestamp into a timezone-aware datetime.

    Questrade returns offsets such as ``-05:00``; a trailing ``Z`` is
    accepted as well.  Naive values are assumed to be UTC.
    """
    if ts_str.endswith("Z"):
        ts_str = ts_str[:-1] + "+00:00"
    dt = datetime.fromisoformat(ts_str)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _build_http_session(max_retries: int, backoff_factor: float) -> requests.Session:
    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class QuestradeSession:
    """OAuth session against the Questrade login server.

    The session satisfies the
    :class:`~candlevault.ingestion.pipeline.SessionKeeper` protocol:
    :meth:`expired` is a cheap, non-blocking check and :meth:`renew`
    performs a fresh refresh-token grant.
    """

    def __init__(
        self,
        refresh_token: str,
        practice: bool = False,
        timeout: float = 10.0,
        renew_margin: float = SESSION_RENEW_MARGIN_SECONDS,
        http: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the session without logging in.

        Args:
            refresh_token: Initial Questrade refresh token.
            practice: Use the practice login server instead of live.
            timeout: Request timeout in seconds.
            renew_margin: Seconds before the real expiry at which
                :meth:`expired` starts returning True.
            http: Optional requests session (tests inject a stub).
            clock: Monotonic clock used for expiry bookkeeping.
        """
        if not refresh_token:
            raise ValueError("Questrade refresh token is not set")
        self.refresh_token = refresh_token
        self.login_url = PRACTICE_LOGIN_URL if practice else LIVE_LOGIN_URL
        self.timeout = timeout
        self.renew_margin = renew_margin
        self.http = http or _build_http_session(max_retries=3, backoff_factor=0.5)
        self._clock = clock
        self.access_token: Optional[str] = None
        self.api_server: Optional[str] = None
        self.expires_at: Optional[float] = None

    def login(self) -> None:
        """Exchange the current refresh token for an access token.

        Raises:
            SessionRenewalError: If the grant fails for any reason.  The
                refresh token is left unchanged in that case.
        """
        url = f"{self.login_url}/oauth2/token"
        params = {"grant_type": "refresh_token", "refresh_token": self.refresh_token}
        try:
            response = self.http.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise SessionRenewalError(f"Questrade login request failed: {exc}") from exc
        if response.status_code != 200:
            raise SessionRenewalError(
                f"Questrade login failed: {response.status_code} {response.text}"
            )
        try:
            data = response.json()
            access_token = data["access_token"]
            api_server = data["api_server"]
            refresh_token = data["refresh_token"]
            expires_in = float(data["expires_in"])
        except (ValueError, KeyError, TypeError) as exc:
            raise SessionRenewalError(f"Malformed Questrade login response: {exc}") from exc

        self.access_token = access_token
        self.api_server = api_server if api_server.endswith("/") else api_server + "/"
        self.refresh_token = refresh_token
        self.expires_at = self._clock() + max(expires_in - self.renew_margin, 0.0)
        logger.info("Logged in to %s (token valid for %ds)", self.api_server, int(expires_in))

    def renew(self) -> None:
        """Log in again with the rotated refresh token."""
        logger.info("Logging in again...")
        self.login()

    def expired(self) -> bool:
        """Return True when no valid access token is held."""
        if self.expires_at is None:
            return True
        return self._clock() >= self.expires_at

    def auth_headers(self) -> Dict[str, str]:
        if self.access_token is None:
            raise ProviderError("Questrade session is not logged in")
        return {"Authorization": f"Bearer {self.access_token}"}


class QuestradeDataProvider(DataProvider):
    """Concrete data provider using the Questrade REST API."""

    def __init__(
        self,
        session: QuestradeSession,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ) -> None:
        """Initialize the provider.

        Args:
            session: Logged-in (or soon to be logged-in) Questrade session.
                The provider reads the API server and token from it on
                every call, so renewals take effect immediately.
            timeout: Default request timeout in seconds.
            max_retries: Maximum number of retry attempts for rate limits and
                transient errors.
            backoff_factor: Backoff factor for exponential backoff between retries.
        """
        self.session = session
        self.timeout = timeout
        self.http = _build_http_session(max_retries, backoff_factor)

    def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        """Perform an authenticated HTTP GET request and return the decoded JSON.

        Args:
            path: API path relative to the session's API server.
            params: Query string parameters.

        Returns:
            A dictionary parsed from the JSON response.

        Raises:
            ProviderError: If the request fails or the response cannot be decoded.
        """
        if self.session.api_server is None:
            raise ProviderError("Questrade session is not logged in")
        url = f"{self.session.api_server}{path}"
        try:
            response = self.http.get(
                url, params=params, headers=self.session.auth_headers(), timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise ProviderError(f"Questrade request failed: {exc}") from exc
        if response.status_code in (401, 403):
            raise ProviderError(
                f"Questrade authentication failed: {response.status_code} {response.text}"
            )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ProviderError(f"Questrade API request failed: {exc}") from exc
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Failed to decode Questrade JSON response: {exc}") from exc
        if not isinstance(data, dict):
            raise ProviderError(
                f"Unexpected Questrade response for {path}: expected an object, "
                f"got {type(data).__name__}"
            )
        return data

    def search_symbols(self, prefix: str) -> List[SymbolMatch]:
        data = self._get("v1/symbols/search", {"prefix": prefix, "offset": "0"})
        matches: List[SymbolMatch] = []
        for entry in self._items(data, "symbols"):
            if not isinstance(entry, dict):
                continue
            try:
                matches.append(
                    SymbolMatch(
                        symbol=entry["symbol"],
                        symbol_id=int(entry["symbolId"]),
                        listing_exchange=entry.get("listingExchange") or "",
                        description=entry.get("description"),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderError(f"Malformed symbol search entry {entry!r}: {exc}") from exc
        return matches

    def get_candles(
        self,
        symbol_id: int,
        start: datetime,
        end: datetime,
        interval: str,
    ) -> List[Bar]:
        params = {
            "startTime": self._format_datetime(start),
            "endTime": self._format_datetime(end),
            "interval": interval,
        }
        data = self._get(f"v1/markets/candles/{symbol_id}", params)
        bars: List[Bar] = []
        for entry in self._items(data, "candles"):
            try:
                bars.append(
                    Bar(
                        start=_parse_timestamp(entry["start"]),
                        end=_parse_timestamp(entry["end"]),
                        open=float(entry["open"]),
                        close=float(entry["close"]),
                        high=float(entry["high"]),
                        low=float(entry["low"]),
                        volume=int(entry["volume"]),
                    )
                )
            except ValidationError as exc:
                raise ProviderError(f"Invalid candle for id {symbol_id}: {exc}") from exc
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderError(f"Malformed candle entry {entry!r}: {exc}") from exc
        return bars

    @staticmethod
    def _items(data: Any, key: str) -> List[Any]:
        """Return the list stored under ``key`` in a decoded response."""
        if not isinstance(data, dict):
            raise ProviderError(
                f"Unexpected Questrade response: expected an object, got {type(data).__name__}"
            )
        items = data.get(key) or []
        if not isinstance(items, list):
            raise ProviderError(f"Unexpected Questrade response: {key!r} is not a list")
        return items

    @staticmethod
    def _format_datetime(dt: datetime) -> str:
        """Format a datetime as an ISO 8601 string with explicit offset.

        Naive datetimes are assumed to be UTC.  Microseconds are stripped.
        """
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()
