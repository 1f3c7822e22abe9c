from __future__ import annotations

from datetime import date

import plotly.graph_objects as go

from profittracker.domain.phase4 import StoredUpdate
from profittracker.reports.charts import profit_by_bot_figure, profit_by_date_figure
from profittracker.reports.summary import ReportSummary, build_report, updates_frame


def _update(lineage, version, uploaded_at, investment, profit, shown_profit=None):
    return StoredUpdate(
        values={
            "uploadedAt": uploaded_at,
            "date": uploaded_at[:10],
            "version": version,
            "status": "Update Metrics",
            "investment": f"{investment:.2f}",
            # Vergleich-Updates zeigen die Differenz, die Baseline bleibt absolut
            "profit": f"{(shown_profit if shown_profit is not None else profit):.2f}",
        },
        baseline={"investment": str(investment), "profit": str(profit)},
        lineage=lineage,
    )


def _updates():
    return [
        _update("ETH Grid", 1, "2026-10-01T10:00:00", 100, 10),
        _update("ETH Grid", 2, "2026-10-02T09:00:00", 100, 25, shown_profit=15),
        _update("ETH Grid", 3, "2026-10-02T18:00:00", 150, 30, shown_profit=5),
        _update("BTC Grid", 1, "2026-10-02T12:00:00", 50, 5),
    ]


def test_updates_frame_uses_baseline() -> None:
    df = updates_frame(_updates())
    eth = df[df["lineage"] == "ETH Grid"]
    assert list(eth["profit"]) == [10.0, 25.0, 30.0]
    assert list(eth["day"]) == [date(2026, 10, 1), date(2026, 10, 2), date(2026, 10, 2)]


def test_report_single_day() -> None:
    summary = build_report(_updates(), date(2026, 10, 2), date(2026, 10, 2))
    assert summary.total_profit == 25.0
    assert summary.total_investment == 200.0
    assert summary.total_profit_percent == 12.5
    assert summary.day_count == 1
    assert summary.avg_daily_profit == 25.0
    assert summary.update_count == 3
    assert list(summary.by_bot["botName"]) == ["ETH Grid", "BTC Grid"]
    assert list(summary.by_bot["profit"]) == [20.0, 5.0]
    assert list(summary.by_date["label"]) == ["02.10"]


def test_report_full_range() -> None:
    summary = build_report(_updates())
    assert summary.total_profit == 35.0
    assert summary.day_count == 2
    assert summary.avg_daily_profit == 17.5
    assert summary.update_count == 4

    data = summary.to_dict()
    assert data["totalProfit"] == "35.00"
    assert data["profitByDate"] == [
        {"date": "2026-10-01", "label": "01.10", "profit": 10.0},
        {"date": "2026-10-02", "label": "02.10", "profit": 25.0},
    ]


def test_report_empty_range() -> None:
    summary = build_report(_updates(), date(2026, 11, 1), date(2026, 11, 30))
    assert summary.total_profit == 0.0
    assert summary.day_count == 30
    assert summary.update_count == 0
    assert summary.to_dict()["profitByBot"] == []


def test_report_without_updates() -> None:
    summary = build_report([])
    assert summary.to_dict()["totalInvestment"] == "0.00"
    assert profit_by_bot_figure(summary) is None
    assert profit_by_date_figure(summary) is None


def test_charts_from_summary() -> None:
    summary = build_report(_updates())
    bars = profit_by_bot_figure(summary)
    assert isinstance(bars, go.Figure)
    assert list(bars.data[0].x) == ["ETH Grid", "BTC Grid"]
    line = profit_by_date_figure(summary)
    assert list(line.data[0].x) == ["01.10", "02.10"]


def test_empty_summary_defaults() -> None:
    summary = ReportSummary(start=None, end=None)
    assert summary.by_bot.empty
    assert summary.to_dict()["start"] is None
