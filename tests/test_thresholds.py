from __future__ import annotations

import dataclasses

from profittracker.alerts.thresholds import (
    DECREASE,
    EINMALIG,
    INCREASE,
    WIEDERHOLEND,
    AlarmLevelConfig,
    ThresholdConfig,
    active_thresholds,
    create_threshold,
    dismiss_alarm,
    evaluate_all,
    evaluate_threshold,
    parse_threshold_value,
    paused_thresholds,
    toggle_threshold,
    trigger_threshold,
    triggered,
)


def _up(value="100", frequency=EINMALIG, **kwargs) -> ThresholdConfig:
    return create_threshold("t1", value, notify_on_increase=True, increase_frequency=frequency, **kwargs)


def test_parse_threshold_value() -> None:
    assert parse_threshold_value("1,5") == 1.5
    assert parse_threshold_value(" 100 ") == 100.0
    assert parse_threshold_value("") is None
    assert parse_threshold_value("abc") is None
    assert parse_threshold_value("inf") is None


def test_level_semantics_without_previous_price() -> None:
    assert evaluate_threshold(_up(), 100.0).should_trigger
    assert evaluate_threshold(_up(), 101.0).trigger_type == INCREASE
    assert not evaluate_threshold(_up(), 99.0).should_trigger


def test_crossing_semantics_with_previous_price() -> None:
    assert evaluate_threshold(_up(), 101.0, previous_price=99.0).should_trigger
    assert not evaluate_threshold(_up(), 105.0, previous_price=101.0).should_trigger

    down = create_threshold("t2", "100", notify_on_decrease=True)
    result = evaluate_threshold(down, 99.0, previous_price=101.0)
    assert result.should_trigger
    assert result.trigger_type == DECREASE
    assert "101.0 -> 99.0" in result.message


def test_paused_and_pending_thresholds_never_trigger() -> None:
    paused = toggle_threshold(_up(), False)
    assert not evaluate_threshold(paused, 150.0).should_trigger

    pending = dataclasses.replace(_up(), active_alarm_id="alarm-1")
    result = evaluate_threshold(pending, 150.0)
    assert not result.should_trigger
    assert "pending" in result.message


def test_invalid_value_never_triggers() -> None:
    assert not evaluate_threshold(_up("kein Wert"), 150.0).should_trigger


def test_einmalig_deactivates_after_trigger() -> None:
    alarm, updated = trigger_threshold(_up(), INCREASE, "ETH/USDT", alarm_id="alarm-1")
    assert alarm.id == "alarm-1"
    assert alarm.pair_name == "ETH/USDT"
    assert updated.is_active is False
    assert updated.active_alarm_id is None


def test_wiederholend_blocks_until_matching_dismiss() -> None:
    _, updated = trigger_threshold(_up(frequency=WIEDERHOLEND), INCREASE, "ETH/USDT", alarm_id="alarm-1")
    assert updated.is_active is True
    assert updated.trigger_count == 1
    assert updated.active_alarm_id == "alarm-1"
    assert not evaluate_threshold(updated, 150.0).should_trigger

    stale = dismiss_alarm(updated, "alarm-0")
    assert stale.active_alarm_id == "alarm-1"

    cleared = dismiss_alarm(updated, "alarm-1")
    assert cleared.active_alarm_id is None
    assert evaluate_threshold(cleared, 150.0).should_trigger


def test_alarm_requires_approval_from_level_config() -> None:
    threshold = _up(alarm_level="gefährlich")
    alarm, _ = trigger_threshold(threshold, INCREASE, "ETH/USDT")
    assert alarm.requires_approval is True
    alarm, _ = trigger_threshold(threshold, INCREASE, "ETH/USDT", level_config=AlarmLevelConfig(False))
    assert alarm.requires_approval is False


def test_dict_roundtrip_and_missing_is_active() -> None:
    data = {"id": "x", "threshold": "2,5", "notifyOnIncrease": True, "increaseFrequency": "wiederholend"}
    threshold = ThresholdConfig.from_dict(data)
    assert threshold.is_active is True
    assert threshold.increase_frequency == WIEDERHOLEND
    assert threshold.decrease_frequency == EINMALIG
    assert "activeAlarmId" not in threshold.to_dict()
    assert ThresholdConfig.from_dict(threshold.to_dict()) == threshold


def test_active_and_paused_filters() -> None:
    items = [_up(), toggle_threshold(_up(), False)]
    assert len(active_thresholds(items)) == 1
    assert len(paused_thresholds(items)) == 1


def test_alarm_level_repeat_count() -> None:
    assert AlarmLevelConfig.from_dict({"repeatCount": "infinite"}).repeat_count == "infinite"
    assert AlarmLevelConfig.from_dict({"repeatCount": 0}).repeat_count == 1
    assert AlarmLevelConfig.from_dict({"repeatCount": "x"}).repeat_count == 1


def test_evaluate_all_and_triggered() -> None:
    thresholds = [
        create_threshold("low", "90", notify_on_increase=True),
        create_threshold("high", "110", notify_on_increase=True),
        create_threshold("drop", "95", notify_on_decrease=True),
        dataclasses.replace(create_threshold("paused", "50", notify_on_increase=True), is_active=False),
    ]
    results = evaluate_all(thresholds, 100.0, previous_price=85.0)
    assert [r.threshold_id for r in results] == ["low", "high", "drop", "paused"]

    fired = triggered(results)
    assert [r.threshold_id for r in fired] == ["low"]
    assert fired[0].trigger_type == INCREASE
    assert triggered(evaluate_all([], 100.0)) == []
