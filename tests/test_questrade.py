"""Tests for the Questrade session and data provider.

HTTP is never performed: the login flow uses a stub requests session and
the provider's ``_get`` method is monkeypatched, as in the provider
tests of the rest of the suite.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

import pytest
import requests

from candlevault.exceptions import ProviderError, SessionRenewalError
from candlevault.providers.questrade import (
    LIVE_LOGIN_URL,
    PRACTICE_LOGIN_URL,
    QuestradeDataProvider,
    QuestradeSession,
    _parse_timestamp,
)


class DummyResponse:
    """A simple stand-in for ``requests.Response``."""

    def __init__(self, data: Any, status_code: int = 200) -> None:
        self._data = data
        self.status_code = status_code
        self.text = str(data) if isinstance(data, Exception) else json.dumps(data)

    def json(self) -> Any:
        if isinstance(self._data, Exception):
            raise self._data
        return self._data

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class DummyHttp:
    """Records GET calls and replays canned responses in order."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        self.calls.append((url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _token_payload(refresh: str = "refresh-2", expires_in: int = 1800) -> Dict[str, Any]:
    return {
        "access_token": "access-1",
        "token_type": "Bearer",
        "expires_in": expires_in,
        "refresh_token": refresh,
        "api_server": "https://api01.iq.questrade.com",
    }


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_login_stores_tokens_and_rotates_refresh_token() -> None:
    http = DummyHttp([DummyResponse(_token_payload())])
    session = QuestradeSession("refresh-1", http=http, clock=Clock())
    session.login()
    assert session.access_token == "access-1"
    assert session.refresh_token == "refresh-2"
    assert session.api_server == "https://api01.iq.questrade.com/"
    url, kwargs = http.calls[0]
    assert url == f"{LIVE_LOGIN_URL}/oauth2/token"
    assert kwargs["params"] == {"grant_type": "refresh_token", "refresh_token": "refresh-1"}


def test_practice_server_selected() -> None:
    http = DummyHttp([DummyResponse(_token_payload())])
    session = QuestradeSession("refresh-1", practice=True, http=http)
    session.login()
    assert http.calls[0][0] == f"{PRACTICE_LOGIN_URL}/oauth2/token"


def test_expiry_uses_renew_margin() -> None:
    clock = Clock()
    http = DummyHttp([DummyResponse(_token_payload(expires_in=1800))] * 2)
    session = QuestradeSession("refresh-1", renew_margin=60, http=http, clock=clock)
    assert session.expired()  # never logged in
    session.login()
    assert not session.expired()
    clock.now += 1739
    assert not session.expired()
    clock.now += 1
    assert session.expired()
    session.renew()
    assert not session.expired()
    assert http.calls[1][1]["params"]["refresh_token"] == "refresh-2"


def test_rejected_login_raises_and_keeps_token() -> None:
    http = DummyHttp([DummyResponse({"error": "invalid_grant"}, status_code=400)])
    session = QuestradeSession("refresh-1", http=http)
    with pytest.raises(SessionRenewalError):
        session.login()
    assert session.refresh_token == "refresh-1"
    assert session.expired()


def test_login_transport_error_raises_renewal_error() -> None:
    http = DummyHttp([requests.ConnectionError("unreachable")])
    session = QuestradeSession("refresh-1", http=http)
    with pytest.raises(SessionRenewalError):
        session.login()


def test_malformed_login_payload() -> None:
    http = DummyHttp([DummyResponse({"access_token": "x"})])
    with pytest.raises(SessionRenewalError):
        QuestradeSession("refresh-1", http=http).login()


def test_empty_refresh_token_rejected() -> None:
    with pytest.raises(ValueError):
        QuestradeSession("")


def _logged_in_provider() -> QuestradeDataProvider:
    http = DummyHttp([DummyResponse(_token_payload())])
    session = QuestradeSession("refresh-1", http=http)
    session.login()
    return QuestradeDataProvider(session)


def test_search_symbols_parses_matches(monkeypatch) -> None:
    provider = _logged_in_provider()
    seen = {}

    def fake_get(path: str, params: Dict[str, str]) -> Dict[str, Any]:
        seen["path"], seen["params"] = path, params
        return {
            "symbols": [
                {
                    "symbol": "AAPL",
                    "symbolId": 8049,
                    "description": "APPLE INC",
                    "securityType": "Stock",
                    "listingExchange": "NASDAQ",
                    "isTradable": True,
                    "isQuotable": True,
                    "currency": "USD",
                },
                {"symbol": "AAPL.TO", "symbolId": 11, "listingExchange": "TSX"},
            ]
        }

    monkeypatch.setattr(provider, "_get", fake_get)
    matches = provider.search_symbols("AAPL")
    assert seen == {"path": "v1/symbols/search", "params": {"prefix": "AAPL", "offset": "0"}}
    assert [(m.symbol, m.symbol_id, m.listing_exchange) for m in matches] == [
        ("AAPL", 8049, "NASDAQ"),
        ("AAPL.TO", 11, "TSX"),
    ]


def test_get_candles_parses_bars(monkeypatch) -> None:
    provider = _logged_in_provider()
    seen = {}

    def fake_get(path: str, params: Dict[str, str]) -> Dict[str, Any]:
        seen["path"], seen["params"] = path, params
        return {
            "candles": [
                {
                    "start": "2021-10-18T00:00:00.000000-04:00",
                    "end": "2021-10-19T00:00:00.000000-04:00",
                    "low": 143.5,
                    "high": 146.8,
                    "open": 143.9,
                    "close": 146.5,
                    "volume": 85589175,
                    "VWAP": 145.6,
                }
            ]
        }

    monkeypatch.setattr(provider, "_get", fake_get)
    start = datetime(2021, 10, 18, tzinfo=timezone.utc)
    end = datetime(2021, 10, 20, 12, 0, 0, 123456, tzinfo=timezone.utc)
    bars = provider.get_candles(8049, start, end, "OneDay")
    assert seen["path"] == "v1/markets/candles/8049"
    assert seen["params"] == {
        "startTime": "2021-10-18T00:00:00+00:00",
        "endTime": "2021-10-20T12:00:00+00:00",
        "interval": "OneDay",
    }
    assert len(bars) == 1
    assert bars[0].start == datetime(2021, 10, 18, 4, 0, tzinfo=timezone.utc)
    assert bars[0].volume == 85589175


def test_get_candles_rejects_inconsistent_bar(monkeypatch) -> None:
    provider = _logged_in_provider()
    bad = {
        "start": "2021-10-18T00:00:00-04:00",
        "end": "2021-10-19T00:00:00-04:00",
        "low": 150.0,
        "high": 146.8,
        "open": 143.9,
        "close": 146.5,
        "volume": 1,
    }
    monkeypatch.setattr(provider, "_get", lambda path, params: {"candles": [bad]})
    with pytest.raises(ProviderError):
        provider.get_candles(1, datetime(2021, 1, 1), datetime(2021, 12, 1), "OneDay")


def test_get_candles_rejects_missing_fields(monkeypatch) -> None:
    provider = _logged_in_provider()
    monkeypatch.setattr(provider, "_get", lambda path, params: {"candles": [{"start": "x"}]})
    with pytest.raises(ProviderError):
        provider.get_candles(1, datetime(2021, 1, 1), datetime(2021, 12, 1), "OneDay")


def test_get_requires_login() -> None:
    session = QuestradeSession("refresh-1", http=DummyHttp([]))
    provider = QuestradeDataProvider(session)
    with pytest.raises(ProviderError):
        provider.search_symbols("AAPL")


def test_get_maps_http_failures(monkeypatch) -> None:
    provider = _logged_in_provider()
    responses = DummyHttp(
        [
            DummyResponse({"code": 1017, "message": "Access token is invalid"}, status_code=401),
            DummyResponse({"code": 1001}, status_code=404),
            DummyResponse(ValueError("not json")),
            requests.Timeout("slow"),
        ]
    )
    monkeypatch.setattr(provider, "http", responses)
    for _ in range(4):
        with pytest.raises(ProviderError):
            provider.search_symbols("AAPL")
    url, kwargs = responses.calls[0]
    assert url == "https://api01.iq.questrade.com/v1/symbols/search"
    assert kwargs["headers"] == {"Authorization": "Bearer access-1"}


def test_parse_timestamp_variants() -> None:
    assert _parse_timestamp("2021-10-18T00:00:00Z") == datetime(2021, 10, 18, tzinfo=timezone.utc)
    assert _parse_timestamp("2021-10-18T00:00:00").tzinfo is timezone.utc


@pytest.mark.parametrize("payload", [[], "maintenance", None, 42])
def test_get_rejects_non_object_json(monkeypatch, payload) -> None:
    provider = _logged_in_provider()
    monkeypatch.setattr(provider, "http", DummyHttp([DummyResponse(payload)]))
    with pytest.raises(ProviderError, match="expected an object"):
        provider.search_symbols("AAPL")


@pytest.mark.parametrize("payload", [[], "maintenance", None])
def test_search_symbols_rejects_non_object_payload(monkeypatch, payload) -> None:
    provider = _logged_in_provider()
    monkeypatch.setattr(provider, "_get", lambda path, params: payload)
    with pytest.raises(ProviderError):
        provider.search_symbols("AAPL")


@pytest.mark.parametrize("payload", [[], "maintenance", None, {"candles": "none"}])
def test_get_candles_rejects_non_object_payload(monkeypatch, payload) -> None:
    provider = _logged_in_provider()
    monkeypatch.setattr(provider, "_get", lambda path, params: payload)
    with pytest.raises(ProviderError):
        provider.get_candles(1, datetime(2021, 1, 1), datetime(2021, 12, 1), "OneDay")
