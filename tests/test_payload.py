from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal

import pytest

from profittracker.domain.phase4 import (
    MalformedJsonError,
    Mode,
    Status,
    ValidationError,
    parse_phase4_payload,
    parse_screenshot_payload,
)


def test_screenshot_aliases_and_number_cleanup() -> None:
    text = """Hier die Daten:
```json
{"screenshots": [{"tradingPair": "ETH/USDT", "actualInvestment": "120 USDT",
  "totalProfit": "1,5", "gridProfitUsdt": 2, "trendPnl": null, "runtime": "1d 2h"}]}
```"""
    records = parse_screenshot_payload(text)
    assert len(records) == 1
    shot = records[0]
    assert shot.bot_name == "ETH/USDT"
    assert shot.investment == Decimal("120")
    assert shot.profit == Decimal("1.5")
    assert shot.grid_profit == Decimal("2")
    assert shot.trend_pnl == Decimal("0")
    assert shot.total_investment is None
    assert shot.runtime == "1d 2h"


def test_screenshot_payload_bare_list_and_single_object() -> None:
    assert len(parse_screenshot_payload('[{"investment": 1}, {"investment": 2}]')) == 2
    assert parse_screenshot_payload({"investment": "5"})[0].investment == Decimal("5")


def test_screenshot_payload_not_json() -> None:
    with pytest.raises(MalformedJsonError):
        parse_screenshot_payload("keine Daten erkannt")


def test_screenshot_non_numeric_value() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_screenshot_payload([{"investment": "viel"}])
    assert exc.value.field == "investment"


def test_phase4_payload_full() -> None:
    previous = {"values": {"version": 3, "profit": "10.00"}, "baseline": {"profit": "40"}}
    request = parse_phase4_payload({
        "screenshotData": json.dumps([{"investment": 100, "profit": 5}]),
        "modes": {"profit": "Vergleich"},
        "isStartMetric": "false",
        "previousUploadData": json.dumps(previous),
        "manualOverrides": {"profit": 7},
        "status": "Closed Bots",
        "uploadedAt": "2026-10-05T14:30:00Z",
    })
    assert len(request.screenshots) == 1
    assert request.modes.profit is Mode.VERGLEICH
    assert request.modes.investment is Mode.NEU
    assert request.is_start_metric is False
    assert request.previous.version == 3
    assert request.previous.diff_base("profit") == Decimal("40")
    assert request.overrides == {"profit": "7"}
    assert request.status is Status.CLOSED_BOTS
    assert request.uploaded_at.replace(tzinfo=None) == datetime(2026, 10, 5, 14, 30)


def test_phase4_payload_modes_at_top_level() -> None:
    request = parse_phase4_payload({
        "screenshots": [{"investment": 1}],
        "gridTimeRange": "Vergleich",
        "isStartMetric": True,
    })
    assert request.modes.grid is Mode.VERGLEICH
    assert request.is_start_metric is True
    assert request.previous is None


def test_phase4_payload_flat_previous_record() -> None:
    request = parse_phase4_payload({
        "screenshots": [{"investment": 1}],
        "previousUpdateRecord": {"version": 2, "investment": "50.00"},
    })
    assert request.previous.version == 2
    assert request.previous.diff_base("investment") == Decimal("50.00")


def test_phase4_payload_malformed_previous() -> None:
    with pytest.raises(MalformedJsonError) as exc:
        parse_phase4_payload({"screenshots": [{"investment": 1}], "previousUploadData": "{kaputt"})
    assert exc.value.source == "previousUploadData"
    assert exc.value.to_response()["category"] == "malformed_input"

    with pytest.raises(MalformedJsonError):
        parse_phase4_payload({"screenshots": [{"investment": 1}], "previousUploadData": "[1, 2]"})


def test_phase4_payload_missing_screenshots() -> None:
    with pytest.raises(ValidationError):
        parse_phase4_payload({"modes": {}})


def test_phase4_payload_invalid_timestamp() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_phase4_payload({"screenshots": [{"investment": 1}], "uploadedAt": "gestern"})
    assert exc.value.field == "uploadedAt"


def test_phase4_payload_unknown_status() -> None:
    with pytest.raises(ValidationError):
        parse_phase4_payload({"screenshots": [{"investment": 1}], "status": "Archiv"})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1.234,56", "1234.56"),
        ("1,234.56", "1234.56"),
        ("1.234.567", "1234567"),
        ("1,234,567", "1234567"),
        ("-12,5", "-12.5"),
        ("1 234,56 USDT", "1234.56"),
        ("0,1234", "0.1234"),
    ],
)
def test_number_separators(raw, expected) -> None:
    shot = parse_screenshot_payload([{"investment": raw}])[0]
    assert shot.investment == Decimal(expected)


def test_ambiguous_thousands_comma_rejected() -> None:
    with pytest.raises(ValidationError) as exc:
        parse_screenshot_payload([{"profit": "1,234"}])
    assert exc.value.field == "profit"
    assert "Ambiguous" in exc.value.message
