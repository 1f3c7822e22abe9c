"""
Mode Resolver

Entscheidet pro Kategorie, ob absolut (Neu) oder als Differenz zum
vorherigen Update (Vergleich) gerechnet wird. Fehlt bei Vergleich das
vorherige Update, wird die Kategorie mit Nullen ausgegeben statt den
ganzen Request scheitern zu lassen.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import IncompleteHistoryError
from .models import MetricCategory, Mode, StoredUpdate

logger = logging.getLogger(__name__)

# Felder, die ein vorheriges Update für einen Vergleich tragen muss
CATEGORY_FIELDS: Dict[MetricCategory, Tuple[str, ...]] = {
    MetricCategory.INVESTMENT: ("investment", "extraMargin", "totalInvestment"),
    MetricCategory.PROFIT: ("profit",),
    MetricCategory.TREND: ("overallTrendPnlUsdt",),
    MetricCategory.GRID: ("overallGridProfitUsdt", "highestGridProfit"),
}

# Eingabe-Schlüssel pro Kategorie (Kurzform + Langform des Formulars)
MODE_KEYS: Dict[MetricCategory, Tuple[str, ...]] = {
    MetricCategory.INVESTMENT: ("investment", "investmentTimeRange"),
    MetricCategory.PROFIT: ("profit", "profitTimeRange"),
    MetricCategory.TREND: ("trend", "trendPnl", "trendTimeRange"),
    MetricCategory.GRID: ("grid", "gridProfit", "gridTimeRange"),
}


@dataclass(frozen=True)
class ModeSelection:
    investment: Mode = Mode.NEU
    profit: Mode = Mode.NEU
    trend: Mode = Mode.NEU
    grid: Mode = Mode.NEU

    def for_category(self, category: MetricCategory) -> Mode:
        return getattr(self, category.value)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ModeSelection":
        data = data or {}
        kwargs = {}
        for category, keys in MODE_KEYS.items():
            for key in keys:
                if key in data and data[key] not in (None, ""):
                    kwargs[category.value] = Mode.parse(data[key], category.value)
                    break
        return cls(**kwargs)


@dataclass(frozen=True)
class ResolvedMode:
    category: MetricCategory
    mode: Mode
    # Vergleich ohne vorheriges Update -> alle Felder "0.00"
    zeroed: bool = False

    @property
    def is_diff(self) -> bool:
        return self.mode == Mode.VERGLEICH and not self.zeroed


def resolve_modes(
    selection: ModeSelection,
    previous: Optional[StoredUpdate],
    is_start_metric: bool = False,
) -> Dict[MetricCategory, ResolvedMode]:
    """
    Löst die Modi aller Kategorien auf.

    Args:
        selection: gewählte Modi pro Kategorie
        previous: vorheriges Update der Linie (oder None)
        is_start_metric: Startmetrik, wird nie mit Vorgängern verglichen

    Returns:
        Dict Kategorie -> ResolvedMode

    Raises:
        IncompleteHistoryError: Vergleich mit unvollständigem Vorgänger
    """
    baseline = None if is_start_metric else previous
    resolved: Dict[MetricCategory, ResolvedMode] = {}
    missing: List[str] = []
    missing_categories: List[str] = []

    for category in MetricCategory:
        mode = selection.for_category(category)
        if mode == Mode.NEU:
            resolved[category] = ResolvedMode(category, mode)
            continue
        if baseline is None:
            logger.warning(f"⚠️ Vergleich für '{category.value}' ohne vorheriges Update -> 0.00")
            resolved[category] = ResolvedMode(category, mode, zeroed=True)
            continue
        absent = [f for f in CATEGORY_FIELDS[category] if baseline.diff_base(f) is None]
        if absent:
            missing.extend(absent)
            missing_categories.append(category.value)
        resolved[category] = ResolvedMode(category, mode)

    if missing:
        logger.error(f"❌ Vorheriges Update unvollständig: {', '.join(missing)}")
        raise IncompleteHistoryError(missing, missing_categories)
    return resolved
