"""
Manual Override Layer

Überschreibt berechnete Felder wortgetreu. Nur bei genau einem
Screenshot; bei mehreren wird die Map ignoriert.

Felder mit absoluter Baseline (``investment``, ``profit``, ...) werden
auch in der Baseline korrigiert, damit spätere Vergleiche und Reports
den korrigierten Wert sehen:
- Neu: Baseline = Override
- Vergleich: Baseline = Vorgänger-Basis + Override

Author: Bot-Zentrale
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, Mapping, Optional

from .errors import ValidationError
from .models import Mode, StoredUpdate, UpdateRecord, to_decimal

logger = logging.getLogger(__name__)

# Werden vom Store vergeben, nie vom Nutzer
PROTECTED_FIELDS = frozenset({"version", "status"})


def _field_modes(record: UpdateRecord) -> Dict[str, Mode]:
    return {name: result.mode for result in record.categories for name in result.amounts}


def _patched_baseline(
    record: UpdateRecord,
    applied: Mapping[str, str],
    previous: Optional[StoredUpdate],
) -> Dict[str, str]:
    baseline = dict(record.baseline)
    modes = _field_modes(record)
    for name, raw in applied.items():
        if name not in baseline or name not in modes:
            continue
        try:
            value = to_decimal(raw)
        except ValidationError as e:
            logger.warning(f"⚠️ Override '{name}' nicht eindeutig, Baseline bleibt: {e.message}")
            continue
        if value is None:
            continue
        if modes[name] == Mode.NEU:
            baseline[name] = str(value)
            continue
        before = previous.diff_base(name) if previous is not None else None
        if before is None:
            # Vergleich ohne Vorgänger: Ausgabe war genullt, Baseline bleibt absolut
            continue
        baseline[name] = str(before + value)
    return baseline


def apply_overrides(
    record: UpdateRecord,
    overrides: Optional[Mapping[str, str]],
    screenshot_count: int,
    previous: Optional[StoredUpdate] = None,
) -> UpdateRecord:
    """
    Wendet manuelle Overrides an.

    Args:
        record: berechneter Record
        overrides: Feldname -> Wert (String, wird nicht validiert)
        screenshot_count: Anzahl Screenshots im Upload
        previous: Vorgänger, gegen den der Record gerechnet wurde
            (None bei Startmetrik oder erstem Upload)

    Returns:
        neuer UpdateRecord (oder der unveränderte bei No-op)
    """
    if not overrides:
        return record
    if screenshot_count != 1:
        logger.info(f"ℹ️ {len(overrides)} Override(s) ignoriert ({screenshot_count} Screenshots)")
        return record

    known = set(record.to_wire())
    applied: Dict[str, str] = dict(record.overrides)
    for name, value in overrides.items():
        if name in PROTECTED_FIELDS:
            logger.warning(f"⚠️ Override für geschütztes Feld '{name}' übersprungen")
            continue
        if name not in known:
            logger.warning(f"⚠️ Unbekanntes Override-Feld '{name}' übersprungen")
            continue
        applied[name] = "" if value is None else str(value)

    logger.info(f"✏️ {len(applied)} Override(s) angewendet")
    return dataclasses.replace(
        record,
        overrides=applied,
        baseline=_patched_baseline(record, applied, previous),
    )
