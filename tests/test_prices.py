from __future__ import annotations

import pytest
import requests

from profittracker.alerts import prices
from profittracker.alerts.prices import PriceFeedError, fetch_price, fetch_prices, fetch_ticker
from profittracker.alerts.watchlist import PairMarket


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        return self._payload


def test_fetch_ticker_spot(monkeypatch) -> None:
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return FakeResponse(200, {"symbol": "ETHUSDT", "lastPrice": "2012.5", "priceChangePercent": "-1.2"})

    monkeypatch.setattr(prices.requests, "get", fake_get)
    ticker = fetch_ticker("ethusdt")
    assert seen["url"] == "https://api.binance.com/api/v3/ticker/24hr"
    assert seen["params"] == {"symbol": "ETHUSDT"}
    assert ticker.last_price == 2012.5
    assert ticker.change_percent == -1.2


def test_fetch_ticker_futures_endpoint(monkeypatch) -> None:
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"] = url
        return FakeResponse(200, {"lastPrice": "1"})

    monkeypatch.setattr(prices.requests, "get", fake_get)
    fetch_ticker("BTCUSDT", "futures", futures_base="https://fapi.example/")
    assert seen["url"] == "https://fapi.example/fapi/v1/ticker/24hr"


def test_fetch_ticker_errors(monkeypatch) -> None:
    monkeypatch.setattr(prices.requests, "get", lambda *a, **k: FakeResponse(400, text="Invalid symbol"))
    with pytest.raises(PriceFeedError):
        fetch_ticker("NOPE")

    monkeypatch.setattr(prices.requests, "get", lambda *a, **k: FakeResponse(200, {"symbol": "X"}))
    with pytest.raises(PriceFeedError):
        fetch_ticker("X")


def test_fetch_price_returns_none_on_network_error(monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(prices.requests, "get", boom)
    assert fetch_price("ETHUSDT") is None


def test_fetch_prices_per_pair(monkeypatch) -> None:
    def fake_get(url, params=None, timeout=None):
        if params["symbol"] == "ETHUSDT":
            return FakeResponse(200, {"lastPrice": "2000"})
        return FakeResponse(400, text="bad")

    monkeypatch.setattr(prices.requests, "get", fake_get)
    result = fetch_prices({
        "ETH/USDT": PairMarket("spot", "ETHUSDT"),
        "FOO/USDT": PairMarket("spot", "FOOUSDT"),
    })
    assert result == {"ETH/USDT": 2000.0, "FOO/USDT": None}
