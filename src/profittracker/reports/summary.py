"""
Report-Aggregation

Dünne Lese-Schicht über gespeicherte Updates für einen Zeitraum:
- Summen: Investment, Profit, Profit in % vom Investment
- Profit pro Bot (Linie) und Profit pro Tag als Chart-Serien

Profit wird aus den absoluten Werten (Baseline) abgeleitet: pro Linie
und Tag der letzte absolute Profit minus dem letzten bekannten Wert
davor. Dadurch zählen Neu- und Vergleich-Updates gleich und nichts
wird doppelt summiert.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from profittracker.data.store.records import record_day
from profittracker.domain.phase4.models import StoredUpdate

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["lineage", "version", "day", "status", "investment", "profit"]


@dataclass
class ReportSummary:
    start: Optional[date]
    end: Optional[date]
    total_investment: float = 0.0
    total_profit: float = 0.0
    total_profit_percent: float = 0.0
    avg_daily_profit: float = 0.0
    day_count: int = 1
    update_count: int = 0
    by_bot: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=["botName", "profit"]))
    by_date: pd.DataFrame = field(default_factory=lambda: pd.DataFrame(columns=["date", "label", "profit"]))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "totalInvestment": f"{self.total_investment:.2f}",
            "totalProfit": f"{self.total_profit:.2f}",
            "totalProfitPercent": f"{self.total_profit_percent:.2f}",
            "avgDailyProfit": f"{self.avg_daily_profit:.2f}",
            "dayCount": self.day_count,
            "updateCount": self.update_count,
            "profitByBot": [
                {"botName": r.botName, "profit": round(float(r.profit), 2)}
                for r in self.by_bot.itertuples(index=False)
            ],
            "profitByDate": [
                {"date": r.date.isoformat(), "label": r.label, "profit": round(float(r.profit), 2)}
                for r in self.by_date.itertuples(index=False)
            ],
        }


def updates_frame(updates: Iterable[StoredUpdate]) -> pd.DataFrame:
    """StoredUpdates -> DataFrame mit absoluten Werten."""
    rows = []
    for u in updates:
        day = record_day(u)
        if day is None:
            logger.debug(f"Update {u.id or '?'} ohne Datum übersprungen")
            continue
        investment = u.diff_base("investment")
        profit = u.diff_base("profit")
        rows.append({
            "lineage": u.lineage or "Unbenannt",
            "version": u.version,
            "day": day,
            "status": u.status,
            "investment": float(investment) if investment is not None else 0.0,
            "profit": float(profit) if profit is not None else 0.0,
        })
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["lineage", "version"]).reset_index(drop=True)


def _daily_earned(df: pd.DataFrame) -> pd.DataFrame:
    """Pro Linie und Tag: letzter absoluter Profit minus Vortageswert."""
    daily = df.groupby(["lineage", "day"], as_index=False).last()
    daily = daily.sort_values(["lineage", "day"])
    daily["earned"] = daily.groupby("lineage")["profit"].diff().fillna(daily["profit"])
    return daily


def build_report(
    updates: Iterable[StoredUpdate],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> ReportSummary:
    """
    Report für [start, end] (inklusive) bauen.

    Args:
        updates: alle gespeicherten Updates (auch vor ``start``, als Basis)
        start: erster Tag (None = ab dem ersten Update)
        end: letzter Tag (None = bis zum letzten Update)

    Returns:
        ReportSummary
    """
    df = updates_frame(updates)
    summary = ReportSummary(start=start, end=end)
    if df.empty:
        return summary

    daily = _daily_earned(df)
    in_range = pd.Series(True, index=daily.index)
    if start is not None:
        in_range &= daily["day"] >= start
    if end is not None:
        in_range &= daily["day"] <= end
    window = daily[in_range]

    first_day = start or df["day"].min()
    last_day = end or df["day"].max()
    summary.day_count = max(1, (last_day - first_day).days + 1)

    mask = pd.Series(True, index=df.index)
    if start is not None:
        mask &= df["day"] >= start
    if end is not None:
        mask &= df["day"] <= end
    summary.update_count = int(mask.sum())

    if window.empty:
        return summary

    latest = window.sort_values(["lineage", "day"]).groupby("lineage").last()
    summary.total_investment = round(float(latest["investment"].sum()), 2)
    summary.total_profit = round(float(window["earned"].sum()), 2)
    if summary.total_investment:
        summary.total_profit_percent = round(summary.total_profit / summary.total_investment * 100, 2)
    summary.avg_daily_profit = round(summary.total_profit / summary.day_count, 2)

    by_bot = window.groupby("lineage", as_index=False)["earned"].sum()
    summary.by_bot = (
        by_bot.rename(columns={"lineage": "botName", "earned": "profit"})
        .sort_values("profit", ascending=False)
        .reset_index(drop=True)
    )

    by_date = window.groupby("day", as_index=False)["earned"].sum().sort_values("day")
    by_date = by_date.rename(columns={"day": "date", "earned": "profit"})
    by_date["label"] = by_date["date"].map(lambda d: d.strftime("%d.%m"))
    summary.by_date = by_date[["date", "label", "profit"]].reset_index(drop=True)

    logger.info(
        f"📈 Report {first_day} - {last_day}: Profit {summary.total_profit:.2f} "
        f"auf {summary.total_investment:.2f} ({summary.total_profit_percent:.2f}%)"
    )
    return summary
