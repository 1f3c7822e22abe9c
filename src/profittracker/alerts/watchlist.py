"""
Watchlist

Beobachtete Trading-Pairs mit Markttyp und Schwellenwerten pro Pair.

Wichtig: Entfernen eines Pairs pausiert alle seine Schwellenwerte und
löscht offene Alarm-Sperren. Erneutes Hinzufügen aktiviert sie NICHT
wieder, der Nutzer muss sie selbst einschalten.

Author: Bot-Zentrale
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .thresholds import (
    DEFAULT_ALARM_LEVEL_CONFIGS,
    ActiveAlarm,
    AlarmLevelConfig,
    ThresholdConfig,
    dismiss_alarm,
    evaluate_all,
    trigger_threshold,
    triggered,
)

logger = logging.getLogger(__name__)

SPOT = "spot"
FUTURES = "futures"


@dataclass(frozen=True)
class PairMarket:
    market_type: str = SPOT
    symbol: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"marketType": self.market_type, "symbol": self.symbol}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PairMarket":
        market_type = str(data.get("marketType") or SPOT).lower()
        return cls(
            market_type=market_type if market_type in (SPOT, FUTURES) else SPOT,
            symbol=str(data.get("symbol") or ""),
        )


def symbol_for_pair(pair_id: str) -> str:
    """'ETH/USDT' -> 'ETHUSDT'"""
    return "".join(ch for ch in pair_id.upper() if ch.isalnum())


@dataclass(frozen=True)
class WatchlistState:
    pairs: Tuple[str, ...] = ()
    markets: Dict[str, PairMarket] = field(default_factory=dict)
    thresholds: Dict[str, Tuple[ThresholdConfig, ...]] = field(default_factory=dict)
    alarm_levels: Dict[str, AlarmLevelConfig] = field(
        default_factory=lambda: dict(DEFAULT_ALARM_LEVEL_CONFIGS)
    )

    def thresholds_for(self, pair_id: str) -> Tuple[ThresholdConfig, ...]:
        return self.thresholds.get(pair_id, ())

    def market_for(self, pair_id: str) -> PairMarket:
        return self.markets.get(pair_id) or PairMarket(SPOT, symbol_for_pair(pair_id))


def add_pair(
    state: WatchlistState, pair_id: str, market_type: str = SPOT, symbol: Optional[str] = None
) -> WatchlistState:
    """Pair hinzufügen. Vorhandene Schwellenwerte bleiben exakt wie sie sind."""
    markets = dict(state.markets)
    markets[pair_id] = PairMarket(market_type, symbol or symbol_for_pair(pair_id))
    pairs = state.pairs if pair_id in state.pairs else state.pairs + (pair_id,)
    return dataclasses.replace(state, pairs=pairs, markets=markets)


def remove_pair(state: WatchlistState, pair_id: str) -> WatchlistState:
    """Pair entfernen: alle Schwellenwerte inaktiv, Alarm-Sperren gelöscht."""
    thresholds = dict(state.thresholds)
    if pair_id in thresholds:
        thresholds[pair_id] = tuple(
            dataclasses.replace(t, is_active=False, active_alarm_id=None) for t in thresholds[pair_id]
        )
        logger.info(f"⏸️ {len(thresholds[pair_id])} Schwellenwert(e) von {pair_id} pausiert")
    pairs = tuple(p for p in state.pairs if p != pair_id)
    return dataclasses.replace(state, pairs=pairs, thresholds=thresholds)


def set_thresholds(state: WatchlistState, pair_id: str, thresholds) -> WatchlistState:
    updated = dict(state.thresholds)
    updated[pair_id] = tuple(thresholds)
    return dataclasses.replace(state, thresholds=updated)


def replace_threshold(state: WatchlistState, pair_id: str, threshold: ThresholdConfig) -> WatchlistState:
    """Schwellenwert mit gleicher ID ersetzen, sonst anhängen."""
    current = list(state.thresholds_for(pair_id))
    for i, existing in enumerate(current):
        if existing.id == threshold.id:
            current[i] = threshold
            break
    else:
        current.append(threshold)
    return set_thresholds(state, pair_id, current)


def dismiss(state: WatchlistState, alarm: ActiveAlarm) -> WatchlistState:
    current = state.thresholds_for(alarm.pair_id)
    return set_thresholds(state, alarm.pair_id, [dismiss_alarm(t, alarm.id) for t in current])


def check_prices(
    state: WatchlistState,
    prices: Mapping[str, Optional[float]],
    previous_prices: Optional[Mapping[str, Optional[float]]] = None,
) -> Tuple[WatchlistState, List[ActiveAlarm]]:
    """
    Ein Prüfdurchlauf über alle beobachteten Pairs.

    Args:
        state: aktueller Zustand
        prices: pair_id -> aktueller Preis (None = nicht verfügbar)
        previous_prices: pair_id -> letzter Preis (Kreuzungs-Logik)

    Returns:
        (neuer Zustand, ausgelöste Alarme)
    """
    previous_prices = previous_prices or {}
    alarms: List[ActiveAlarm] = []
    for pair_id in state.pairs:
        price = prices.get(pair_id)
        thresholds = state.thresholds_for(pair_id)
        if price is None or not thresholds:
            continue
        results = evaluate_all(thresholds, price, previous_prices.get(pair_id))
        fired = {r.threshold_id: r for r in triggered(results)}
        updated = []
        for threshold in thresholds:
            result = fired.get(threshold.id)
            if result is not None:
                alarm, threshold = trigger_threshold(
                    threshold,
                    result.trigger_type,
                    pair_id,
                    pair_name=pair_id,
                    message=result.message,
                    level_config=state.alarm_levels.get(threshold.alarm_level),
                )
                alarms.append(alarm)
            updated.append(threshold)
        state = set_thresholds(state, pair_id, updated)
    return state, alarms
