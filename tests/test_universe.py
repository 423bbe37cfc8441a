"""Tests for loading the seed universe file."""

from __future__ import annotations

import json

import pytest

from candlevault.exceptions import ConfigError
from candlevault.universe import load_universe


def _write(path, payload) -> str:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_load_universe_preserves_order(tmp_path) -> None:
    path = _write(
        tmp_path / "sp500.json",
        [
            {
                "symbol": "MMM",
                "name": "3M",
                "industry": "Industrials",
                "subindustry": "Industrial Conglomerates",
                "exchange": "NYSE",
                "cik": "0000066740",
            },
            {
                "symbol": "AAPL",
                "name": "Apple Inc.",
                "industry": "Information Technology",
                "subindustry": "Technology Hardware",
                "exchange": "NASDAQ",
            },
        ],
    )
    instruments = load_universe(path)
    assert [i.symbol for i in instruments] == ["MMM", "AAPL"]
    assert instruments[0].exchange == "NYSE"
    assert instruments[1].subindustry == "Technology Hardware"
    assert all(i.internal_id is None and i.series == [] for i in instruments)


def test_missing_file(tmp_path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_universe(tmp_path / "absent.json")


def test_invalid_json(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid JSON"):
        load_universe(path)


def test_top_level_must_be_a_list(tmp_path) -> None:
    path = _write(tmp_path / "obj.json", {"symbol": "AAPL"})
    with pytest.raises(ConfigError, match="array"):
        load_universe(path)


def test_record_must_be_an_object(tmp_path) -> None:
    path = _write(tmp_path / "strings.json", ["AAPL"])
    with pytest.raises(ConfigError, match="record 0"):
        load_universe(path)


def test_invalid_record_names_its_position(tmp_path) -> None:
    good = {"symbol": "AAPL", "name": "Apple", "industry": "IT", "subindustry": "HW", "exchange": "NASDAQ"}
    bad = {"symbol": "MSFT", "name": "Microsoft", "industry": "IT", "subindustry": "SW"}
    path = _write(tmp_path / "partial.json", [good, bad])
    with pytest.raises(ConfigError, match=r"record 1 \(MSFT\)"):
        load_universe(path)
