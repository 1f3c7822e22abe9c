"""
Preis-Feed (Binance REST)

Spot:    /api/v3/ticker/24hr
Futures: /fapi/v1/ticker/24hr

Fehler werden geloggt, der Aufrufer bekommt None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

import requests

from profittracker.config import DEFAULT_FUTURES_API, DEFAULT_PRICE_API

from .watchlist import PairMarket

logger = logging.getLogger(__name__)


class PriceFeedError(Exception):
    """Preis konnte nicht geladen werden."""


@dataclass(frozen=True)
class Ticker:
    symbol: str
    last_price: float
    change_percent: float
    market_type: str


def _endpoint(market_type: str, spot_base: str, futures_base: str) -> str:
    if market_type == "futures":
        return f"{futures_base.rstrip('/')}/fapi/v1/ticker/24hr"
    return f"{spot_base.rstrip('/')}/api/v3/ticker/24hr"


def fetch_ticker(
    symbol: str,
    market_type: str = "spot",
    spot_base: str = DEFAULT_PRICE_API,
    futures_base: str = DEFAULT_FUTURES_API,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
) -> Ticker:
    """
    24h-Ticker für ein Symbol laden.

    Raises:
        PriceFeedError: Netzwerk-/HTTP-/Formatfehler
    """
    url = _endpoint(market_type, spot_base, futures_base)
    http = session or requests
    try:
        response = http.get(url, params={"symbol": symbol.upper()}, timeout=timeout)
    except requests.RequestException as e:
        raise PriceFeedError(f"{symbol}: {e}") from e
    if response.status_code != 200:
        raise PriceFeedError(f"{symbol}: HTTP {response.status_code} {response.text[:200]}")
    try:
        data = response.json()
        return Ticker(
            symbol=str(data.get("symbol") or symbol.upper()),
            last_price=float(data["lastPrice"]),
            change_percent=float(data.get("priceChangePercent") or 0.0),
            market_type=market_type,
        )
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise PriceFeedError(f"{symbol}: unexpected response: {e}") from e


def fetch_price(symbol: str, market_type: str = "spot", **kwargs) -> Optional[float]:
    """Letzter Preis oder None."""
    try:
        return fetch_ticker(symbol, market_type, **kwargs).last_price
    except PriceFeedError as e:
        logger.warning(f"⚠️ Preis nicht verfügbar: {e}")
        return None


def fetch_prices(markets: Mapping[str, PairMarket], **kwargs) -> Dict[str, Optional[float]]:
    """pair_id -> PairMarket; liefert pair_id -> Preis (None bei Fehler)."""
    prices: Dict[str, Optional[float]] = {}
    for pair_id, market in markets.items():
        prices[pair_id] = fetch_price(market.symbol, market.market_type, **kwargs)
    return prices
