"""
Screenshot Aggregator

Summiert die Zahlenfelder aller Screenshots eines Uploads und leitet
Richtung, Hebel sowie längste/durchschnittliche Laufzeit ab.

Summen laufen über Decimal, damit die Reihenfolge der Screenshots
keinen Einfluss auf das Ergebnis hat.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from .errors import ValidationError
from .models import ScreenshotRecord, UploadBatch, ZERO
from .runtime import format_duration, parse_duration

logger = logging.getLogger(__name__)

LONG = "Long"
SHORT = "Short"
MIXED = "Beides"

_LEADING_NUMBER = re.compile(r"(\d+(?:[.,]\d+)?)")


@dataclass(frozen=True)
class AggregatedTotals:
    investment: Decimal
    extra_margin: Decimal
    total_investment: Decimal
    profit: Decimal
    grid_profit: Decimal
    trend_pnl: Decimal
    bot_direction: str
    leverage: str
    longest_runtime_hours: float
    avg_runtime_hours: float
    screenshot_count: int
    # Screenshot mit dem höchsten Grid-Profit (eigene Basen)
    highest_grid_profit: Decimal
    highest_grid_investment: Decimal
    highest_grid_total_investment: Decimal

    @property
    def longest_runtime(self) -> str:
        return format_duration(self.longest_runtime_hours)

    @property
    def avg_runtime(self) -> str:
        return format_duration(self.avg_runtime_hours)

    def as_baseline(self) -> Dict[str, str]:
        """Absolute Summen für die Persistenz (Basis späterer Vergleiche)."""
        return {
            "investment": str(self.investment),
            "extraMargin": str(self.extra_margin),
            "totalInvestment": str(self.total_investment),
            "profit": str(self.profit),
            "overallTrendPnlUsdt": str(self.trend_pnl),
            "overallGridProfitUsdt": str(self.grid_profit),
            "highestGridProfit": str(self.highest_grid_profit),
        }


def _classify_direction(screenshots: Sequence[ScreenshotRecord]) -> str:
    seen = set()
    for shot in screenshots:
        text = f"{shot.direction} {shot.leverage}".lower()
        if "long" in text:
            seen.add(LONG)
        elif "short" in text:
            seen.add(SHORT)
        else:
            seen.add(None)
    if seen == {LONG}:
        return LONG
    if seen == {SHORT}:
        return SHORT
    return MIXED


def _leverage_key(value: str):
    match = _LEADING_NUMBER.search(value)
    number = float(match.group(1).replace(",", ".")) if match else math.inf
    return (number, value)


def _combine_leverage(screenshots: Sequence[ScreenshotRecord]) -> str:
    values = {s.leverage.strip() for s in screenshots if s.leverage and s.leverage.strip()}
    return ", ".join(sorted(values, key=_leverage_key))


def _sum(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return total


def aggregate(batch: UploadBatch) -> AggregatedTotals:
    """
    Aggregiert einen Upload.

    Args:
        batch: alle Screenshots eines Uploads

    Returns:
        AggregatedTotals

    Raises:
        ValidationError: bei leerem Upload
    """
    shots: List[ScreenshotRecord] = list(batch)
    if not shots:
        raise ValidationError("No screenshots supplied", field="screenshots")

    runtimes = [parse_duration(s.runtime) for s in shots]
    parsed = [h for h in runtimes if h > 0]
    if len(parsed) < len(runtimes):
        logger.warning(f"⚠️ {len(runtimes) - len(parsed)} Laufzeit(en) nicht lesbar")

    longest = max(parsed) if parsed else 0.0
    average = math.fsum(parsed) / len(parsed) if parsed else 0.0

    top = max(
        shots,
        key=lambda s: (s.grid_profit, -s.gesamtinvestment, -s.investment),
    )

    totals = AggregatedTotals(
        investment=_sum(s.investment for s in shots),
        extra_margin=_sum(s.extra_margin for s in shots),
        total_investment=_sum(s.gesamtinvestment for s in shots),
        profit=_sum(s.profit for s in shots),
        grid_profit=_sum(s.grid_profit for s in shots),
        trend_pnl=_sum(s.trend_pnl for s in shots),
        bot_direction=_classify_direction(shots),
        leverage=_combine_leverage(shots),
        longest_runtime_hours=longest,
        avg_runtime_hours=average,
        screenshot_count=len(shots),
        highest_grid_profit=top.grid_profit,
        highest_grid_investment=top.investment,
        highest_grid_total_investment=top.gesamtinvestment,
    )
    logger.info(
        f"📊 {totals.screenshot_count} Screenshot(s) aggregiert: "
        f"Investment {totals.investment}, Profit {totals.profit}, Richtung {totals.bot_direction}"
    )
    return totals
