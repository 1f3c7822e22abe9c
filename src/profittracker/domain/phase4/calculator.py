"""
Differential Calculator

Erzeugt aus AggregatedTotals, aufgelösten Modi und dem vorherigen Update
den kanonischen UpdateRecord.

Regeln:
- Neu: aggregierte Summen, jedes Prozentfeld mit beiden Basen
  (Gesamtinvestment und Investitionsmenge)
- Vergleich: aktuell - vorher, ein Prozentfeld als Wachstumsrate
  (0 wenn der Vorwert 0 ist)
- Vergleich ohne Vorgänger: alle Felder der Kategorie "0.00"
- highestGridProfit ist das Maximum eines einzelnen Screenshots mit
  dessen eigenen Basen
- avgGridProfitWeek erst ab einer Woche Datenbasis

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .aggregator import AggregatedTotals
from .models import (
    ZERO,
    CategoryResult,
    InfoSection,
    MetricCategory,
    NeuPercent,
    Percent,
    Status,
    StoredUpdate,
    UpdateRecord,
    VergleichPercent,
    percent_of,
    q2,
)
from .modes import ResolvedMode
from .runtime import format_duration

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24
HOURS_PER_WEEK = 168


def parse_iso_timestamp(value) -> Optional[datetime]:
    """ISO-Zeitstempel (auch mit 'Z') -> datetime, sonst None."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def elapsed_hours(start: datetime, end: datetime) -> float:
    # naive/aware gemischt -> beide naiv vergleichen
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)
    return (end - start).total_seconds() / 3600.0


def growth_rate(delta: Decimal, previous: Decimal) -> Decimal:
    if previous == 0:
        return ZERO
    return delta / previous * 100


# ---------------------------
# Kategorien
# ---------------------------


def _investment(resolved: ResolvedMode, totals: AggregatedTotals, prev: Optional[StoredUpdate]) -> CategoryResult:
    current = {
        "investment": totals.investment,
        "extraMargin": totals.extra_margin,
        "totalInvestment": totals.total_investment,
    }
    if resolved.zeroed:
        amounts = {name: ZERO for name in current}
    elif resolved.is_diff:
        amounts = {name: value - prev.diff_base(name) for name, value in current.items()}
    else:
        amounts = current
    return CategoryResult(MetricCategory.INVESTMENT, resolved.mode, amounts)


def _single_value(
    category: MetricCategory,
    usdt_field: str,
    percent_field: str,
    value: Decimal,
    resolved: ResolvedMode,
    totals: AggregatedTotals,
    prev: Optional[StoredUpdate],
) -> CategoryResult:
    if resolved.zeroed:
        return CategoryResult(
            category, resolved.mode, {usdt_field: ZERO}, {percent_field: VergleichPercent(ZERO)}
        )
    if resolved.is_diff:
        before = prev.diff_base(usdt_field)
        delta = value - before
        return CategoryResult(
            category,
            resolved.mode,
            {usdt_field: delta},
            {percent_field: VergleichPercent(growth_rate(delta, before))},
        )
    pct = NeuPercent(
        gesamt=percent_of(value, totals.total_investment),
        eigen=percent_of(value, totals.investment),
    )
    return CategoryResult(category, resolved.mode, {usdt_field: value}, {percent_field: pct})


def _grid(resolved: ResolvedMode, totals: AggregatedTotals, prev: Optional[StoredUpdate]) -> CategoryResult:
    if resolved.zeroed:
        return CategoryResult(
            MetricCategory.GRID,
            resolved.mode,
            {"overallGridProfitUsdt": ZERO, "highestGridProfit": ZERO},
            {
                "overallGridProfitPercent": VergleichPercent(ZERO),
                "highestGridProfitPercent": VergleichPercent(ZERO),
            },
        )

    if resolved.is_diff:
        amounts: Dict[str, Optional[Decimal]] = {}
        percents: Dict[str, Percent] = {}
        for usdt_field, percent_field, value in (
            ("overallGridProfitUsdt", "overallGridProfitPercent", totals.grid_profit),
            ("highestGridProfit", "highestGridProfitPercent", totals.highest_grid_profit),
        ):
            before = prev.diff_base(usdt_field)
            delta = value - before
            amounts[usdt_field] = delta
            percents[percent_field] = VergleichPercent(growth_rate(delta, before))
        return CategoryResult(MetricCategory.GRID, resolved.mode, amounts, percents)

    return CategoryResult(
        MetricCategory.GRID,
        resolved.mode,
        {
            "overallGridProfitUsdt": totals.grid_profit,
            "highestGridProfit": totals.highest_grid_profit,
        },
        {
            "overallGridProfitPercent": NeuPercent(
                gesamt=percent_of(totals.grid_profit, totals.total_investment),
                eigen=percent_of(totals.grid_profit, totals.investment),
            ),
            "highestGridProfitPercent": NeuPercent(
                gesamt=percent_of(totals.highest_grid_profit, totals.highest_grid_total_investment),
                eigen=percent_of(totals.highest_grid_profit, totals.highest_grid_investment),
            ),
        },
    )


# ---------------------------
# Durchschnitte pro Zeiteinheit
# ---------------------------


def grid_averages(grid_usdt: Decimal, basis_hours: float) -> Dict[str, Optional[Decimal]]:
    """
    avgGridProfitHour/Day/Week aus Grid-USDT und Datenbasis in Stunden.

    Week bleibt None, solange weniger als eine Woche vorliegt.
    """
    if basis_hours is None or basis_hours <= 0:
        return {"avgGridProfitHour": ZERO, "avgGridProfitDay": ZERO, "avgGridProfitWeek": None}
    hour = grid_usdt / Decimal(repr(basis_hours))
    return {
        "avgGridProfitHour": hour,
        "avgGridProfitDay": hour * HOURS_PER_DAY,
        "avgGridProfitWeek": hour * HOURS_PER_WEEK if basis_hours >= HOURS_PER_WEEK else None,
    }


def _average_changes(
    averages: Dict[str, Optional[Decimal]], prev: StoredUpdate
) -> Dict[str, Optional[Decimal]]:
    out: Dict[str, Optional[Decimal]] = {}
    for unit in ("Hour", "Day", "Week"):
        last = prev.value_number(f"avgGridProfit{unit}")
        if last is None:
            continue
        out[f"lastAvgGridProfit{unit}"] = last
        current = averages.get(f"avgGridProfit{unit}")
        if current is None:
            continue
        change = q2(current) - last
        out[f"change{unit}Dollar"] = change
        out[f"change{unit}Percent"] = growth_rate(change, last)
    return out


# ---------------------------
# Entry
# ---------------------------


def calculate_record(
    totals: AggregatedTotals,
    modes: Dict[MetricCategory, ResolvedMode],
    previous: Optional[StoredUpdate],
    uploaded_at: datetime,
    screenshot_date: Optional[date] = None,
    is_start_metric: bool = False,
    status: Status = Status.UPDATE_METRICS,
    closed_range: Optional[Tuple[str, str]] = None,
) -> UpdateRecord:
    """
    Berechnet den vollständigen UpdateRecord.

    Args:
        totals: Aggregat des aktuellen Uploads
        modes: Ergebnis von ``resolve_modes``
        previous: vorheriges Update der Linie (bei Startmetrik nur für
            Version und Datum, nie als Differenzbasis)
        uploaded_at: Zeitpunkt dieses Uploads
        screenshot_date: Datum aus dem Screenshot (für die Startmetrik)
        is_start_metric: erstes Update der Linie
        status: "Update Metrics" oder "Closed Bots"
        closed_range: (start, ende) für Closed Bots

    Returns:
        UpdateRecord
    """
    prev = None if is_start_metric else previous

    categories = (
        _investment(modes[MetricCategory.INVESTMENT], totals, prev),
        _single_value(
            MetricCategory.PROFIT, "profit", "profitPercent",
            totals.profit, modes[MetricCategory.PROFIT], totals, prev,
        ),
        _single_value(
            MetricCategory.TREND, "overallTrendPnlUsdt", "overallTrendPnlPercent",
            totals.trend_pnl, modes[MetricCategory.TREND], totals, prev,
        ),
        _grid(modes[MetricCategory.GRID], totals, prev),
    )
    grid_usdt = categories[3].amounts["overallGridProfitUsdt"]

    # Datenbasis: seit dem letzten Upload, sonst durchschnittliche Laufzeit
    since_last: Optional[float] = None
    if prev is not None:
        last_upload = parse_iso_timestamp(prev.values.get("uploadedAt"))
        if last_upload is not None:
            since_last = elapsed_hours(last_upload, uploaded_at)
    basis = since_last if since_last is not None and since_last > 0 else totals.avg_runtime_hours

    if modes[MetricCategory.GRID].zeroed:
        extras: Dict[str, Optional[Decimal]] = {
            "avgGridProfitHour": ZERO, "avgGridProfitDay": ZERO, "avgGridProfitWeek": ZERO,
        }
    else:
        extras = dict(grid_averages(grid_usdt, basis))
    extras["avgGridProfitUsdt"] = grid_usdt / totals.screenshot_count
    if prev is not None:
        extras.update(_average_changes(extras, prev))

    # Version läuft pro Linie weiter, das Datum bleibt das des ersten Updates
    if previous is None or not previous.values.get("date"):
        record_date = (screenshot_date or uploaded_at.date()).isoformat()
    else:
        record_date = str(previous.values["date"])

    version = 1 if previous is None else previous.version + 1

    info = InfoSection(
        date=record_date,
        bot_direction=totals.bot_direction,
        leverage=totals.leverage,
        longest_runtime=totals.longest_runtime,
        avg_runtime=totals.avg_runtime,
        bot_count=totals.screenshot_count,
        uploaded_at=uploaded_at.isoformat(timespec="seconds"),
        upload_runtime=format_duration(since_last) if since_last is not None else "",
        closed_bots_start=closed_range[0] if closed_range else None,
        closed_bots_end=closed_range[1] if closed_range else None,
    )

    record = UpdateRecord(
        info=info,
        categories=categories,
        extras=extras,
        version=version,
        status=status,
        baseline=totals.as_baseline(),
    )
    modes_text = ", ".join(f"{c.category.value}={c.mode.value}" for c in categories)
    logger.info(f"✅ Update berechnet: v{version} ({modes_text})")
    return record
