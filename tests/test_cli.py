from __future__ import annotations

import json

import pytest

from profittracker.app.cli import main, parse_arguments
from profittracker.data.store.records import JsonRecordStore


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("PT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PT_LOG_PATH", str(tmp_path / "logs" / "cli.log"))
    monkeypatch.delenv("PT_STORE_PATH", raising=False)
    monkeypatch.delenv("PT_SYNC_URL", raising=False)
    return tmp_path


def _payload(tmp_path, name, body) -> str:
    path = tmp_path / name
    path.write_text(json.dumps(body), encoding="utf-8")
    return str(path)


def test_parse_arguments() -> None:
    args = parse_arguments(["report", "--from", "2026-10-01", "--to", "2026-10-19"])
    assert args.command == "report"
    assert args.start.isoformat() == "2026-10-01"
    with pytest.raises(SystemExit):
        parse_arguments(["report", "--from", "01.10.2026"])


def test_calculate_save_then_compare(env, capsys) -> None:
    first = _payload(env, "first.json", {
        "screenshots": [{"investment": 120, "profit": "71.03"}, {"investment": 120, "profit": "-17.43"}],
        "isStartMetric": True,
    })
    assert main(["calculate", "--payload", first, "--lineage", "ETH Grid", "--save"]) == 0

    second = _payload(env, "second.json", {
        "screenshots": [{"investment": 120, "profit": 100}, {"investment": 200, "profit": "53.10"}],
        "modes": {"investment": "Vergleich", "profit": "Vergleich"},
    })
    assert main(["calculate", "--payload", second, "--lineage", "ETH Grid", "--save"]) == 0

    out = capsys.readouterr().out
    assert '"profit": "99.50"' in out

    store = JsonRecordStore(env / "updates.json")
    latest = store.latest("ETH Grid")
    assert latest.version == 2
    assert latest.values["investment"] == "80.00"
    assert latest.baseline["investment"] == "320"


def test_calculate_reports_errors(env, capsys) -> None:
    path = _payload(env, "empty.json", {"screenshots": []})
    assert main(["calculate", "--payload", path]) == 1
    assert "validation" in capsys.readouterr().out


def test_save_requires_lineage(env, capsys) -> None:
    path = _payload(env, "one.json", {"screenshots": [{"investment": 1}]})
    assert main(["calculate", "--payload", path, "--save"]) == 1


def test_history_and_report(env, capsys) -> None:
    path = _payload(env, "one.json", {
        "screenshots": [{"investment": 100, "profit": 10}],
        "uploadedAt": "2026-10-05T10:00:00",
    })
    main(["calculate", "--payload", path, "--lineage", "SOL Grid", "--save"])
    capsys.readouterr()

    assert main(["history", "--lineage", "SOL Grid"]) == 0
    assert "v1" in capsys.readouterr().out

    assert main(["report", "--from", "2026-10-05", "--to", "2026-10-05"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["totalProfit"] == "10.00"
    assert report["totalInvestment"] == "100.00"


def test_watch_once_prints_alarms(env, monkeypatch, capsys) -> None:
    from profittracker.alerts.sync import build_watchlist_sync
    from profittracker.alerts.thresholds import create_threshold
    from profittracker.alerts.watchlist import add_pair, set_thresholds
    from profittracker.app import cli
    from profittracker.config import load_config

    monkeypatch.delenv("PT_WATCHLIST_PATH", raising=False)
    sync = build_watchlist_sync(load_config())
    state = add_pair(sync.load(), "BTCUSDT")
    state = set_thresholds(state, "BTCUSDT", [create_threshold("t1", "60000", notify_on_increase=True)])
    sync.save(state)

    monkeypatch.setattr(cli, "fetch_prices", lambda markets, **kwargs: {p: 70000.0 for p in markets})
    assert main(["watch", "--once"]) == 0
    assert "🔔 BTCUSDT" in capsys.readouterr().out
