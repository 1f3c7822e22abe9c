"""
Threshold Engine

Schwellenwerte pro Trading-Pair mit Aktiv-Status, Häufigkeit pro
Richtung (einmalig/wiederholend) und ``active_alarm_id`` als Sperre
gegen doppelte Alarme. Alle Operationen geben neue Objekte zurück.

Author: Bot-Zentrale
"""

from __future__ import annotations

import dataclasses
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

EINMALIG = "einmalig"
WIEDERHOLEND = "wiederholend"
FREQUENCIES = (EINMALIG, WIEDERHOLEND)

ALARM_LEVELS = ("harmlos", "achtung", "gefährlich", "sehr_gefährlich")

INCREASE = "increase"
DECREASE = "decrease"


@dataclass(frozen=True)
class ThresholdConfig:
    id: str
    threshold: str
    notify_on_increase: bool = False
    notify_on_decrease: bool = False
    increase_frequency: str = EINMALIG
    decrease_frequency: str = EINMALIG
    alarm_level: str = "harmlos"
    note: str = ""
    is_active: bool = True
    trigger_count: int = 0
    active_alarm_id: Optional[str] = None

    def frequency(self, direction: str) -> str:
        return self.increase_frequency if direction == INCREASE else self.decrease_frequency

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "threshold": self.threshold,
            "notifyOnIncrease": self.notify_on_increase,
            "notifyOnDecrease": self.notify_on_decrease,
            "increaseFrequency": self.increase_frequency,
            "decreaseFrequency": self.decrease_frequency,
            "alarmLevel": self.alarm_level,
            "note": self.note,
            "isActive": self.is_active,
            "triggerCount": self.trigger_count,
        }
        if self.active_alarm_id:
            data["activeAlarmId"] = self.active_alarm_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ThresholdConfig":
        is_active = data.get("isActive")
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex[:12]),
            threshold="" if data.get("threshold") is None else str(data.get("threshold")),
            notify_on_increase=bool(data.get("notifyOnIncrease", False)),
            notify_on_decrease=bool(data.get("notifyOnDecrease", False)),
            increase_frequency=_frequency(data.get("increaseFrequency")),
            decrease_frequency=_frequency(data.get("decreaseFrequency")),
            alarm_level=_alarm_level(data.get("alarmLevel")),
            note=str(data.get("note") or ""),
            # fehlendes isActive gilt als aktiv
            is_active=True if is_active is None else bool(is_active),
            trigger_count=int(data.get("triggerCount") or 0),
            active_alarm_id=data.get("activeAlarmId") or None,
        )


@dataclass(frozen=True)
class AlarmLevelConfig:
    requires_approval: bool = False
    repeat_count: Union[int, str] = 1
    channels: Dict[str, bool] = field(default_factory=lambda: {"push": True, "email": False})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requiresApproval": self.requires_approval,
            "repeatCount": self.repeat_count,
            "channels": dict(self.channels),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AlarmLevelConfig":
        repeat = data.get("repeatCount", 1)
        if repeat != "infinite":
            try:
                repeat = max(1, int(repeat))
            except (TypeError, ValueError):
                repeat = 1
        return cls(
            requires_approval=bool(data.get("requiresApproval", False)),
            repeat_count=repeat,
            channels={str(k): bool(v) for k, v in dict(data.get("channels") or {}).items()},
        )


DEFAULT_ALARM_LEVEL_CONFIGS: Dict[str, AlarmLevelConfig] = {
    "harmlos": AlarmLevelConfig(False, 1, {"push": True, "email": False}),
    "achtung": AlarmLevelConfig(False, 3, {"push": True, "email": True}),
    "gefährlich": AlarmLevelConfig(True, 5, {"push": True, "email": True}),
    "sehr_gefährlich": AlarmLevelConfig(True, "infinite", {"push": True, "email": True}),
}


@dataclass(frozen=True)
class AlertResult:
    should_trigger: bool
    trigger_type: Optional[str]
    threshold_id: str
    alarm_level: str
    message: str = ""


@dataclass(frozen=True)
class ActiveAlarm:
    id: str
    threshold_id: str
    pair_id: str
    pair_name: str
    threshold: str
    alarm_level: str
    direction: str
    message: str
    requires_approval: bool = False
    created_at: str = ""


def _frequency(value: Any) -> str:
    text = str(value or EINMALIG).strip().lower()
    return text if text in FREQUENCIES else EINMALIG


def _alarm_level(value: Any) -> str:
    text = str(value or "harmlos").strip().lower()
    return text if text in ALARM_LEVELS else "harmlos"


def parse_threshold_value(text: Any) -> Optional[float]:
    """Schwellenwert-Text -> float (Komma als Dezimaltrenner), leer/ungültig -> None."""
    if text is None:
        return None
    s = str(text).strip().replace(",", ".")
    if not s:
        return None
    try:
        value = float(s)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


# ---------------------------
# Auswertung
# ---------------------------


def _move(previous_price: Optional[float], current_price: float) -> str:
    if previous_price is None:
        return f"{current_price}"
    return f"{previous_price} -> {current_price}"


def evaluate_threshold(
    threshold: ThresholdConfig,
    current_price: float,
    previous_price: Optional[float] = None,
) -> AlertResult:
    """
    Prüft einen Schwellenwert gegen den aktuellen Preis.

    Mit ``previous_price`` zählt nur ein Kreuzen des Werts, ohne
    Vorpreis reicht es, dass der Preis auf/über (bzw. auf/unter) dem Wert
    liegt.

    Args:
        threshold: Konfiguration
        current_price: aktueller Preis
        previous_price: letzter bekannter Preis (optional)

    Returns:
        AlertResult
    """
    def _no(message: str) -> AlertResult:
        return AlertResult(False, None, threshold.id, threshold.alarm_level, message)

    if not threshold.is_active:
        return _no("Threshold is paused (isActive=false)")
    if threshold.active_alarm_id:
        return _no("Alarm pending, waiting for dismissal")

    value = parse_threshold_value(threshold.threshold)
    if value is None:
        return _no("Invalid threshold value")
    if current_price is None:
        return _no("No price")

    if previous_price is None:
        up = current_price >= value
        down = current_price <= value
    else:
        up = previous_price < value <= current_price
        down = previous_price > value >= current_price

    if threshold.notify_on_increase and up:
        return AlertResult(
            True, INCREASE, threshold.id, threshold.alarm_level,
            f"Price increased above threshold: {_move(previous_price, current_price)} (threshold: {value})",
        )
    if threshold.notify_on_decrease and down:
        return AlertResult(
            True, DECREASE, threshold.id, threshold.alarm_level,
            f"Price decreased below threshold: {_move(previous_price, current_price)} (threshold: {value})",
        )
    return _no("No threshold crossed")


def is_threshold_due(
    threshold: ThresholdConfig, current_price: float, previous_price: Optional[float] = None
) -> bool:
    return evaluate_threshold(threshold, current_price, previous_price).should_trigger


def evaluate_all(
    thresholds: Iterable[ThresholdConfig],
    current_price: float,
    previous_price: Optional[float] = None,
) -> List[AlertResult]:
    return [evaluate_threshold(t, current_price, previous_price) for t in thresholds]


def triggered(results: Iterable[AlertResult]) -> List[AlertResult]:
    return [r for r in results if r.should_trigger]


def active_thresholds(thresholds: Iterable[ThresholdConfig]) -> List[ThresholdConfig]:
    return [t for t in thresholds if t.is_active]


def paused_thresholds(thresholds: Iterable[ThresholdConfig]) -> List[ThresholdConfig]:
    return [t for t in thresholds if not t.is_active]


# ---------------------------
# Mutationen (immer neue Objekte)
# ---------------------------


def toggle_threshold(threshold: ThresholdConfig, is_active: bool) -> ThresholdConfig:
    return dataclasses.replace(threshold, is_active=bool(is_active))


def create_threshold(threshold_id: Optional[str], value: str, **options: Any) -> ThresholdConfig:
    """Neuer Schwellenwert, Defaults: einmalig, harmlos, aktiv."""
    return ThresholdConfig(
        id=threshold_id or uuid.uuid4().hex[:12],
        threshold=str(value),
        notify_on_increase=bool(options.get("notify_on_increase", False)),
        notify_on_decrease=bool(options.get("notify_on_decrease", False)),
        increase_frequency=_frequency(options.get("increase_frequency")),
        decrease_frequency=_frequency(options.get("decrease_frequency")),
        alarm_level=_alarm_level(options.get("alarm_level")),
        note=str(options.get("note", "")),
        is_active=bool(options.get("is_active", True)),
    )


def trigger_threshold(
    threshold: ThresholdConfig,
    direction: str,
    pair_id: str,
    pair_name: str = "",
    message: str = "",
    alarm_id: Optional[str] = None,
    level_config: Optional[AlarmLevelConfig] = None,
) -> Tuple[ActiveAlarm, ThresholdConfig]:
    """
    Löst einen Schwellenwert aus.

    einmalig: danach inaktiv.
    wiederholend: bleibt aktiv, ``trigger_count`` + 1 und
    ``active_alarm_id`` sperrt weitere Auslösungen bis zur Quittierung.

    Returns:
        (ActiveAlarm, aktualisierter ThresholdConfig)
    """
    alarm_id = alarm_id or f"alarm-{uuid.uuid4().hex[:12]}"
    level_config = level_config or DEFAULT_ALARM_LEVEL_CONFIGS.get(threshold.alarm_level, AlarmLevelConfig())
    alarm = ActiveAlarm(
        id=alarm_id,
        threshold_id=threshold.id,
        pair_id=pair_id,
        pair_name=pair_name or pair_id,
        threshold=threshold.threshold,
        alarm_level=threshold.alarm_level,
        direction=direction,
        message=message,
        requires_approval=level_config.requires_approval,
        created_at=datetime.now().isoformat(timespec="seconds"),
    )

    if threshold.frequency(direction) == WIEDERHOLEND:
        updated = dataclasses.replace(
            threshold,
            trigger_count=threshold.trigger_count + 1,
            active_alarm_id=alarm_id,
        )
    else:
        updated = dataclasses.replace(threshold, is_active=False)

    logger.info(f"🔔 Alarm {alarm_id}: {alarm.pair_name} {direction} {threshold.threshold} ({threshold.alarm_level})")
    return alarm, updated


def dismiss_alarm(threshold: ThresholdConfig, alarm_id: str) -> ThresholdConfig:
    """Gibt die Sperre nur frei, wenn die Alarm-ID passt (keine veralteten Quittungen)."""
    if threshold.active_alarm_id and threshold.active_alarm_id == alarm_id:
        return dataclasses.replace(threshold, active_alarm_id=None)
    return threshold
