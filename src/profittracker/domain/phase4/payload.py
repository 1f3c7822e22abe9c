"""
Phase 4 Payload Parsing

Liest den Request der Berechnung (Screenshots, Modi, vorheriges Update,
Overrides) sowie die JSON-Antwort der KI-Extraktion in typisierte
Objekte. Feldnamen der Extraktion haben mehrere Aliase.

Author: Bot-Zentrale
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .calculator import parse_iso_timestamp
from .errors import MalformedJsonError, ValidationError
from .models import ScreenshotRecord, Status, StoredUpdate, UploadBatch, ZERO, to_decimal
from .modes import ModeSelection

logger = logging.getLogger(__name__)

# Zielattribut -> akzeptierte Schlüssel (erster Treffer gewinnt)
TEXT_ALIASES: Dict[str, Sequence[str]] = {
    "bot_name": ("botName", "tradingPair", "name", "pair"),
    "direction": ("direction", "botDirection"),
    "leverage": ("leverage",),
    "runtime": ("runtime", "runtimeText"),
    "date": ("date", "closeDate"),
    "time": ("time", "closeTime"),
}

NUMBER_ALIASES: Dict[str, Sequence[str]] = {
    "investment": ("investment", "actualInvestment", "investmentUsdt"),
    "extra_margin": ("extraMargin",),
    "total_investment": ("totalInvestment", "totalInvestmentFromScreenshot"),
    "profit": ("profit", "totalProfit", "totalProfitUsdt", "profitUsdt"),
    "profit_percent": ("profitPercent", "totalProfitPercent"),
    "grid_profit": ("gridProfit", "gridProfitUsdt", "overallGridProfitUsdt"),
    "grid_profit_percent": ("gridProfitPercent", "overallGridProfitPercent"),
    "trend_pnl": ("trendPnl", "trendPnlUsdt", "overallTrendPnlUsdt"),
    "trend_pnl_percent": ("trendPnlPercent", "overallTrendPnlPercent"),
}

# optional ohne Default 0
_OPTIONAL_NUMBERS = {"total_investment", "profit_percent", "grid_profit_percent", "trend_pnl_percent"}

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class Phase4Request:
    screenshots: UploadBatch
    modes: ModeSelection
    is_start_metric: bool = False
    previous: Optional[StoredUpdate] = None
    overrides: Dict[str, str] = field(default_factory=dict)
    status: Status = Status.UPDATE_METRICS
    uploaded_at: Optional[datetime] = None


def _first(data: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


def screenshot_from_dict(data: Mapping[str, Any], index: int = 0) -> ScreenshotRecord:
    """Ein Screenshot-Dict (beliebige Alias-Namen) -> ScreenshotRecord."""
    if isinstance(data, ScreenshotRecord):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(
            "Screenshot entry must be an object", details=f"index {index}", field="screenshots"
        )
    kwargs: Dict[str, Any] = {}
    for attr, keys in TEXT_ALIASES.items():
        value = _first(data, keys)
        kwargs[attr] = "" if value is None else str(value).strip()

    for attr, keys in NUMBER_ALIASES.items():
        raw = _first(data, keys)
        if raw is None:
            kwargs[attr] = None if attr in _OPTIONAL_NUMBERS else ZERO
            continue
        try:
            number = to_decimal(raw)
        except ValidationError as e:
            raise ValidationError(e.message, details=f"Screenshot {index + 1}: {e.details}", field=keys[0]) from e
        if number is None:
            raise ValidationError(
                f"Field '{keys[0]}' is not a number",
                details=f"Screenshot {index + 1}: {raw!r}",
                field=keys[0],
            )
        kwargs[attr] = number
    return ScreenshotRecord(**kwargs)


def screenshot_to_dict(shot: ScreenshotRecord) -> Dict[str, Any]:
    """ScreenshotRecord -> Dict mit den kanonischen Schlüsseln (Gegenstück zu ``screenshot_from_dict``)."""
    data: Dict[str, Any] = {}
    for attr, keys in TEXT_ALIASES.items():
        data[keys[0]] = getattr(shot, attr)
    for attr, keys in NUMBER_ALIASES.items():
        value = getattr(shot, attr)
        if value is not None:
            data[keys[0]] = str(value)
    return data


def _extract_json_text(text: str) -> str:
    fenced = _FENCE.search(text)
    if fenced:
        return fenced.group(1).strip()
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        return text
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end <= start:
        return text
    return text[start:end + 1]


def load_json(value: Any, source: str) -> Any:
    """Serialisierten Seitenkanal laden. Nicht-Strings werden durchgereicht."""
    if value is None or isinstance(value, (dict, list)):
        return value
    text = str(value).strip()
    if not text or text == "null":
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedJsonError(source, str(e)) from e


def parse_screenshot_payload(text: Any) -> List[ScreenshotRecord]:
    """
    Antwort der KI-Extraktion -> ScreenshotRecords.

    Akzeptiert ``{"screenshots": [...]}`` oder eine nackte Liste,
    auch mit Text oder Code-Fences drumherum.

    Raises:
        MalformedJsonError: kein JSON erkennbar
    """
    if isinstance(text, (dict, list)):
        data = text
    else:
        raw = str(text or "")
        try:
            data = json.loads(_extract_json_text(raw))
        except json.JSONDecodeError as e:
            raise MalformedJsonError("screenshot payload", str(e)) from e

    if isinstance(data, Mapping):
        items = data.get("screenshots")
        if items is None:
            items = [data]
    else:
        items = data
    if not isinstance(items, list):
        raise MalformedJsonError("screenshot payload", "expected a list of screenshots")
    return [screenshot_from_dict(item, i) for i, item in enumerate(items)]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "ja"}
    return bool(value)


def _parse_overrides(value: Any) -> Dict[str, str]:
    data = load_json(value, "manualOverrides")
    if not data:
        return {}
    if not isinstance(data, Mapping):
        raise ValidationError("manualOverrides must be an object", field="manualOverrides")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def parse_phase4_payload(payload: Mapping[str, Any]) -> Phase4Request:
    """
    Request-Dict -> Phase4Request.

    Args:
        payload: ``screenshots`` oder ``screenshotData`` (JSON-String),
            ``modes``, ``isStartMetric``, ``previousUpdateRecord`` bzw.
            ``previousUploadData``, optional ``manualOverrides``,
            ``status`` und ``uploadedAt``

    Raises:
        ValidationError, MalformedJsonError
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be an object")

    if "screenshots" in payload:
        shots_raw = load_json(payload.get("screenshots"), "screenshots")
    else:
        shots_raw = load_json(payload.get("screenshotData"), "screenshotData")
    if shots_raw is None:
        raise ValidationError("No screenshots supplied", field="screenshots")
    screenshots = parse_screenshot_payload(shots_raw)

    modes_raw = payload.get("modes")
    if modes_raw is None:
        modes_raw = payload
    modes = ModeSelection.from_mapping(load_json(modes_raw, "modes"))

    previous_raw = payload.get("previousUpdateRecord")
    source = "previousUpdateRecord"
    if previous_raw is None:
        previous_raw = payload.get("previousUploadData")
        source = "previousUploadData"
    previous_data = load_json(previous_raw, source)
    if previous_data is not None and not isinstance(previous_data, Mapping):
        raise MalformedJsonError(source, "expected an object")
    previous = StoredUpdate.from_dict(previous_data) if previous_data else None

    uploaded_at = None
    if payload.get("uploadedAt"):
        uploaded_at = parse_iso_timestamp(payload.get("uploadedAt"))
        if uploaded_at is None:
            raise ValidationError("uploadedAt is not an ISO timestamp", field="uploadedAt")

    request = Phase4Request(
        screenshots=UploadBatch(tuple(screenshots)),
        modes=modes,
        is_start_metric=_as_bool(payload.get("isStartMetric", False)),
        previous=previous,
        overrides=_parse_overrides(payload.get("manualOverrides")),
        status=Status.parse(payload.get("status")),
        uploaded_at=uploaded_at,
    )
    logger.debug(f"Payload gelesen: {len(screenshots)} Screenshot(s), Start={request.is_start_metric}")
    return request
