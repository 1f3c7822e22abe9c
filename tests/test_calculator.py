from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from profittracker.domain.phase4 import (
    MetricCategory,
    Mode,
    ModeSelection,
    ScreenshotRecord,
    Status,
    StoredUpdate,
    UploadBatch,
    aggregate,
    calculate_record,
    grid_averages,
    resolve_modes,
)

FIRST_UPLOAD = datetime(2026, 10, 1, 12, 0)
SECOND_UPLOAD = datetime(2026, 10, 2, 12, 0)


def _shot(investment, profit, grid="0", runtime="1d", extra="0") -> ScreenshotRecord:
    return ScreenshotRecord(
        direction="Long",
        leverage="10x",
        runtime=runtime,
        investment=Decimal(str(investment)),
        extra_margin=Decimal(str(extra)),
        profit=Decimal(str(profit)),
        grid_profit=Decimal(str(grid)),
    )


def _calculate(shots, selection=None, previous=None, uploaded_at=FIRST_UPLOAD, **kwargs):
    selection = selection or ModeSelection()
    totals = aggregate(UploadBatch(tuple(shots)))
    modes = resolve_modes(selection, previous, kwargs.get("is_start_metric", False))
    return calculate_record(totals, modes, previous, uploaded_at=uploaded_at, **kwargs)


def _stored(record) -> StoredUpdate:
    return StoredUpdate(values=record.to_wire(), baseline=dict(record.baseline))


def _first_record():
    return _calculate([_shot(120, "71.03", grid=10), _shot(120, "-17.43", grid=5)])


def test_neu_sums_and_dual_percent() -> None:
    values = _first_record().to_wire()
    assert values["investment"] == "240.00"
    assert values["totalInvestment"] == "240.00"
    assert values["profit"] == "53.60"
    assert values["profitPercent_gesamtinvestment"] == "22.33"
    assert values["profitPercent_investitionsmenge"] == "22.33"
    assert "profitPercent" not in values
    assert values["version"] == 1
    assert values["status"] == "Update Metrics"
    assert values["date"] == "2026-10-01"
    assert values["botCount"] == "2"
    assert values["uploadRuntime"] == ""


def test_neu_percent_bases_differ_with_extra_margin() -> None:
    values = _calculate([_shot(100, 10, extra=100)]).to_wire()
    assert values["profitPercent_gesamtinvestment"] == "5.00"
    assert values["profitPercent_investitionsmenge"] == "10.00"


def test_vergleich_differences_and_growth_rate() -> None:
    previous = _stored(_first_record())
    selection = ModeSelection(investment=Mode.VERGLEICH, profit=Mode.VERGLEICH)
    values = _calculate(
        [_shot(120, 100), _shot(200, "53.10")],
        selection=selection,
        previous=previous,
        uploaded_at=SECOND_UPLOAD,
    ).to_wire()
    assert values["investment"] == "80.00"
    assert values["totalInvestment"] == "80.00"
    assert values["extraMargin"] == "0.00"
    assert values["profit"] == "99.50"
    assert values["profitPercent"] == "185.63"
    assert "profitPercent_gesamtinvestment" not in values
    assert values["version"] == 2
    assert values["date"] == "2026-10-01"
    assert values["uploadRuntime"] == "1d 0h 0m"


def test_vergleich_chain_uses_absolute_baseline() -> None:
    selection = ModeSelection(investment=Mode.VERGLEICH)
    second = _calculate(
        [_shot(120, 0), _shot(200, 0)], selection=selection,
        previous=_stored(_first_record()), uploaded_at=SECOND_UPLOAD,
    )
    third = _calculate(
        [_shot(150, 0), _shot(200, 0)], selection=selection,
        previous=_stored(second), uploaded_at=datetime(2026, 10, 3, 12, 0),
    ).to_wire()
    assert third["investment"] == "30.00"
    assert third["version"] == 3


def test_growth_rate_zero_when_previous_is_zero() -> None:
    first = _calculate([_shot(100, 0)])
    values = _calculate(
        [_shot(100, 25)], selection=ModeSelection(profit=Mode.VERGLEICH),
        previous=_stored(first), uploaded_at=SECOND_UPLOAD,
    ).to_wire()
    assert values["profit"] == "25.00"
    assert values["profitPercent"] == "0.00"


def test_vergleich_without_previous_outputs_zeros() -> None:
    selection = ModeSelection(Mode.VERGLEICH, Mode.VERGLEICH, Mode.VERGLEICH, Mode.VERGLEICH)
    values = _calculate([_shot(120, 10, grid=3)], selection=selection).to_wire()
    for name in (
        "investment", "extraMargin", "totalInvestment", "profit", "profitPercent",
        "overallTrendPnlUsdt", "overallTrendPnlPercent", "overallGridProfitUsdt",
        "overallGridProfitPercent", "highestGridProfit", "highestGridProfitPercent",
        "avgGridProfitHour", "avgGridProfitDay", "avgGridProfitWeek",
    ):
        assert values[name] == "0.00", name


def test_highest_grid_profit_uses_single_screenshot_bases() -> None:
    values = _calculate([_shot(100, 0, grid=30, extra=50), _shot(400, 0, grid=10)]).to_wire()
    assert values["highestGridProfit"] == "30.00"
    assert values["highestGridProfitPercent_gesamtinvestment"] == "20.00"
    assert values["highestGridProfitPercent_investitionsmenge"] == "30.00"
    assert values["overallGridProfitUsdt"] == "40.00"
    assert values["avgGridProfitUsdt"] == "20.00"


def test_grid_averages_from_runtime() -> None:
    values = _first_record().to_wire()
    # 15 USDT in 24h
    assert values["avgGridProfitHour"] == "0.63"
    assert values["avgGridProfitDay"] == "15.00"
    assert values["avgGridProfitWeek"] is None


def test_grid_averages_week_needs_full_week() -> None:
    averages = grid_averages(Decimal("336"), 168.0)
    assert averages["avgGridProfitHour"] == Decimal("2")
    assert averages["avgGridProfitDay"] == Decimal("48")
    assert averages["avgGridProfitWeek"] == Decimal("336")
    assert grid_averages(Decimal("336"), 167.9)["avgGridProfitWeek"] is None


def test_grid_averages_without_basis() -> None:
    averages = grid_averages(Decimal("10"), 0)
    assert averages["avgGridProfitHour"] == Decimal("0")
    assert averages["avgGridProfitWeek"] is None


def test_average_changes_against_previous() -> None:
    previous = _stored(_first_record())
    values = _calculate(
        [_shot(120, 0, grid=0)], previous=previous, uploaded_at=SECOND_UPLOAD
    ).to_wire()
    assert values["lastAvgGridProfitHour"] == "0.63"
    assert values["avgGridProfitHour"] == "0.00"
    assert values["changeHourDollar"] == "-0.63"
    assert values["changeHourPercent"] == "-100.00"
    assert "lastAvgGridProfitWeek" not in values


def test_start_metric_on_existing_lineage_keeps_version_and_date() -> None:
    previous = _stored(_first_record())
    values = _calculate(
        [_shot(50, 5)], previous=previous, uploaded_at=SECOND_UPLOAD,
        is_start_metric=True, screenshot_date=date(2026, 9, 30),
    ).to_wire()
    assert values["version"] == 2
    assert values["date"] == "2026-10-01"
    assert values["investment"] == "50.00"
    assert values["uploadRuntime"] == ""


def test_start_metric_without_previous_uses_screenshot_date() -> None:
    values = _calculate([_shot(50, 5)], is_start_metric=True, screenshot_date=date(2026, 9, 30)).to_wire()
    assert values["version"] == 1
    assert values["date"] == "2026-09-30"


def test_closed_bots_info() -> None:
    values = _calculate(
        [_shot(100, 5)], status=Status.CLOSED_BOTS,
        closed_range=("2026-10-04T12:30:00", "2026-10-05T14:30:00"),
    ).to_wire()
    assert values["status"] == "Closed Bots"
    assert values["closedBotsStartDate"] == "2026-10-04T12:30:00"
    assert values["closedBotsEndDate"] == "2026-10-05T14:30:00"


def test_negative_zero_is_normalised() -> None:
    values = _calculate([_shot(100, "-0.001")]).to_wire()
    assert values["profit"] == "0.00"


def test_neu_percent_bases_share_numerator() -> None:
    record = _calculate([_shot(300, 45, extra=200), _shot(100, 15)])
    pct = record.category(MetricCategory.PROFIT).percents["profitPercent"]
    totals = aggregate(UploadBatch((_shot(300, 45, extra=200), _shot(100, 15))))
    assert pct.gesamt * totals.total_investment == pct.eigen * totals.investment


def test_vergleich_delta_roundtrip() -> None:
    previous = _stored(_first_record())
    record = _calculate(
        [_shot("120.37", "88.01"), _shot(200, "-3.3")],
        selection=ModeSelection(investment=Mode.VERGLEICH, profit=Mode.VERGLEICH),
        previous=previous,
        uploaded_at=SECOND_UPLOAD,
    )
    delta = record.category(MetricCategory.PROFIT).amounts["profit"]
    current = record.baseline["profit"]
    assert delta + previous.diff_base("profit") == Decimal(current)
