"""
Phase 4 Datenmodell

ScreenshotRecord, UploadBatch, Modi/Kategorien und der typisierte
UpdateRecord. Prozentfelder sind als Variante modelliert
(``NeuPercent`` mit beiden Basen vs. ``VergleichPercent`` mit einer
Wachstumsrate); das flache Wire-Format entsteht erst in ``to_wire()``.

Author: Bot-Zentrale
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


# ---------------------------
# Zahlen-Helfer
# ---------------------------


def _normalise_separators(text: str) -> str:
    """
    Tausender-/Dezimaltrenner vereinheitlichen.

    Sind Punkt und Komma vorhanden, ist das zuletzt stehende Zeichen der
    Dezimaltrenner (``1.234,56`` und ``1,234.56``). Ein einzelnes Komma
    vor genau drei Ziffern ist mehrdeutig und wird abgelehnt.
    """
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if "," in text:
        if text.count(",") > 1:
            return text.replace(",", "")
        head, _, tail = text.partition(",")
        if len(tail) == 3 and tail.isdigit() and head.lstrip("+-").isdigit():
            raise ValidationError(
                f"Ambiguous number '{text}'",
                details="Use '1.234,00' or '1,234.00' to mark the decimal separator",
            )
        return text.replace(",", ".")
    if text.count(".") > 1:
        return text.replace(".", "")
    return text


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Konvertiert str/int/float nach Decimal. Leere/ungültige Werte -> default.

    Raises:
        ValidationError: mehrdeutige Trenner wie ``1,234``
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace("USDT", "").replace("%", "").replace(" ", "").strip()
    if not text or text.lower() in {"nan", "none", "null", "-", "–"}:
        return default
    text = _normalise_separators(text)
    try:
        result = Decimal(text)
    except InvalidOperation:
        return default
    if not result.is_finite():
        return default
    return result


def q2(value: Decimal) -> Decimal:
    """Kaufmännisch auf 2 Nachkommastellen runden (half-up)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def fmt2(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    result = q2(value)
    if result == 0:
        result = abs(result)
    return f"{result:.2f}"


def percent_of(numerator: Decimal, base: Decimal) -> Decimal:
    """(numerator / base) * 100, 0 bei base == 0."""
    if base == 0:
        return ZERO
    return numerator / base * 100


# ---------------------------
# Enums
# ---------------------------


class Mode(str, Enum):
    NEU = "Neu"
    VERGLEICH = "Vergleich"

    @classmethod
    def parse(cls, value: Any, category: str = "") -> "Mode":
        if isinstance(value, Mode):
            return value
        text = str(value or "").strip().lower()
        if text in ("neu", "insgesamt", "total"):
            return cls.NEU
        if text in ("vergleich", "seit_letztem_update", "since_last_update"):
            return cls.VERGLEICH
        raise ValidationError(
            f"Unknown mode '{value}'",
            details=f"Mode for category '{category}' must be 'Neu' or 'Vergleich'",
            field=category or None,
        )


class MetricCategory(str, Enum):
    INVESTMENT = "investment"
    PROFIT = "profit"
    TREND = "trend"
    GRID = "grid"


class Status(str, Enum):
    UPDATE_METRICS = "Update Metrics"
    CLOSED_BOTS = "Closed Bots"

    @classmethod
    def parse(cls, value: Any) -> "Status":
        if isinstance(value, Status):
            return value
        if value is None or str(value).strip() == "":
            return cls.UPDATE_METRICS
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValidationError(f"Unknown status '{value}'", field="status")


# ---------------------------
# Eingabe
# ---------------------------


@dataclass(frozen=True)
class ScreenshotRecord:
    """Ein Bot-Snapshot aus genau einem Screenshot."""

    bot_name: str = ""
    direction: str = ""
    leverage: str = ""
    runtime: str = ""
    investment: Decimal = ZERO
    extra_margin: Decimal = ZERO
    total_investment: Optional[Decimal] = None
    profit: Decimal = ZERO
    profit_percent: Optional[Decimal] = None
    grid_profit: Decimal = ZERO
    grid_profit_percent: Optional[Decimal] = None
    trend_pnl: Decimal = ZERO
    trend_pnl_percent: Optional[Decimal] = None
    date: str = ""
    time: str = ""

    @property
    def gesamtinvestment(self) -> Decimal:
        if self.total_investment is not None:
            return self.total_investment
        return self.investment + self.extra_margin


@dataclass(frozen=True)
class UploadBatch:
    screenshots: Tuple[ScreenshotRecord, ...]

    def __len__(self) -> int:
        return len(self.screenshots)

    def __iter__(self):
        return iter(self.screenshots)


# ---------------------------
# Ausgabe
# ---------------------------


@dataclass(frozen=True)
class NeuPercent:
    gesamt: Decimal
    eigen: Decimal


@dataclass(frozen=True)
class VergleichPercent:
    rate: Decimal


Percent = Union[NeuPercent, VergleichPercent]


@dataclass(frozen=True)
class CategoryResult:
    category: MetricCategory
    mode: Mode
    amounts: Dict[str, Optional[Decimal]]
    percents: Dict[str, Percent] = field(default_factory=dict)

    def flat(self) -> Dict[str, Optional[str]]:
        out: Dict[str, Optional[str]] = {}
        for name, value in self.amounts.items():
            out[name] = fmt2(value)
        for name, pct in self.percents.items():
            if isinstance(pct, NeuPercent):
                out[f"{name}_gesamtinvestment"] = fmt2(pct.gesamt)
                out[f"{name}_investitionsmenge"] = fmt2(pct.eigen)
            else:
                out[name] = fmt2(pct.rate)
        return out


@dataclass(frozen=True)
class InfoSection:
    date: str
    bot_direction: str
    leverage: str
    longest_runtime: str
    avg_runtime: str
    bot_count: int
    uploaded_at: str
    upload_runtime: str = ""
    closed_bots_start: Optional[str] = None
    closed_bots_end: Optional[str] = None

    def flat(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "date": self.date,
            "botDirection": self.bot_direction,
            "leverage": self.leverage,
            "longestRuntime": self.longest_runtime,
            "avgRuntime": self.avg_runtime,
            "botCount": str(self.bot_count),
            "uploadedAt": self.uploaded_at,
            "uploadRuntime": self.upload_runtime,
        }
        if self.closed_bots_start is not None:
            out["closedBotsStartDate"] = self.closed_bots_start
            out["closedBotsEndDate"] = self.closed_bots_end
        return out


@dataclass(frozen=True)
class UpdateRecord:
    """Kanonisches Ergebnis einer Phase-4-Berechnung."""

    info: InfoSection
    categories: Tuple[CategoryResult, ...]
    extras: Dict[str, Optional[Decimal]]
    version: int
    status: Status
    baseline: Dict[str, str] = field(default_factory=dict)
    overrides: Dict[str, str] = field(default_factory=dict)

    def category(self, category: MetricCategory) -> CategoryResult:
        for result in self.categories:
            if result.category == category:
                return result
        raise KeyError(category)

    def to_wire(self) -> Dict[str, Any]:
        values: Dict[str, Any] = self.info.flat()
        for result in self.categories:
            values.update(result.flat())
        for name, value in self.extras.items():
            values[name] = fmt2(value)
        values["version"] = self.version
        values["status"] = self.status.value
        values.update(self.overrides)
        return values


@dataclass(frozen=True)
class StoredUpdate:
    """Ein persistiertes Update (flaches Wire-Format + absolute Baseline)."""

    values: Dict[str, Any]
    baseline: Dict[str, str] = field(default_factory=dict)
    lineage: str = ""
    id: str = ""
    created_at: str = ""

    @property
    def version(self) -> int:
        try:
            return int(self.values.get("version") or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def status(self) -> str:
        return str(self.values.get("status") or Status.UPDATE_METRICS.value)

    def value_number(self, name: str) -> Optional[Decimal]:
        return to_decimal(self.values.get(name))

    def diff_base(self, name: str) -> Optional[Decimal]:
        """Vergleichsbasis: absolute Baseline, sonst der gespeicherte Wert."""
        if name in self.baseline:
            base = to_decimal(self.baseline.get(name))
            if base is not None:
                return base
        return self.value_number(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lineage": self.lineage,
            "createdAt": self.created_at,
            "values": dict(self.values),
            "baseline": dict(self.baseline),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoredUpdate":
        if "values" in data and isinstance(data.get("values"), Mapping):
            return cls(
                values=dict(data["values"]),
                baseline={k: str(v) for k, v in dict(data.get("baseline") or {}).items()},
                lineage=str(data.get("lineage") or ""),
                id=str(data.get("id") or ""),
                created_at=str(data.get("createdAt") or ""),
            )
        # flacher Record, wie ihn externe Aufrufer schicken
        return cls(values=dict(data))
