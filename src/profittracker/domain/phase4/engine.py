"""profittracker.domain.phase4.engine

Einstiegspunkt der Phase-4-Berechnung.

Ablauf:
1) Screenshots aggregieren
2) Modi pro Kategorie auflösen
3) Differenzen gegen das vorherige Update rechnen
4) Manuelle Overrides anwenden (nur bei genau einem Screenshot),
   inklusive Korrektur der absoluten Baseline

Die Berechnung ist rein und ohne I/O. Laden und Speichern des vorherigen
Updates übernimmt der Aufrufer.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from .aggregator import aggregate
from .calculator import calculate_record
from .closed_bots import closed_bots_range, parse_screenshot_datetime
from .errors import Phase4Error
from .models import Status, UpdateRecord, UploadBatch
from .modes import resolve_modes
from .overrides import apply_overrides
from .payload import Phase4Request, parse_phase4_payload

logger = logging.getLogger(__name__)


def _screenshot_date(batch: UploadBatch) -> Optional[date]:
    dates = [parse_screenshot_datetime(s.date, s.time) for s in batch]
    parsed = [d for d in dates if d is not None]
    return min(parsed).date() if parsed else None


def calculate_update(request: Phase4Request, now: Optional[datetime] = None) -> UpdateRecord:
    """
    Berechnet einen UpdateRecord aus einem Request.

    Args:
        request: geparster Request
        now: Upload-Zeitpunkt (Default: request.uploaded_at bzw. jetzt)

    Returns:
        UpdateRecord inkl. Overrides

    Raises:
        ValidationError, IncompleteHistoryError
    """
    uploaded_at = request.uploaded_at or now or datetime.now()

    totals = aggregate(request.screenshots)
    modes = resolve_modes(request.modes, request.previous, request.is_start_metric)

    closed_range = None
    if request.status == Status.CLOSED_BOTS:
        closed_range = closed_bots_range(request.screenshots)

    record = calculate_record(
        totals,
        modes,
        request.previous,
        uploaded_at=uploaded_at,
        screenshot_date=_screenshot_date(request.screenshots),
        is_start_metric=request.is_start_metric,
        status=request.status,
        closed_range=closed_range,
    )
    previous = None if request.is_start_metric else request.previous
    return apply_overrides(record, request.overrides, totals.screenshot_count, previous)


def run_phase4(payload: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Request-Dict rein, Response-Dict raus.

    Returns:
        {"success": True, "values": {...}, "baseline": {...}}
        oder {"success": False, "error": ..., "category": ..., "details": ...}
    """
    try:
        request = parse_phase4_payload(payload)
        record = calculate_update(request, now=now)
    except Phase4Error as e:
        logger.error(f"❌ Phase 4 fehlgeschlagen ({e.category}): {e.message}")
        response = e.to_response()
        response["success"] = False
        return response

    return {"success": True, "values": record.to_wire(), "baseline": dict(record.baseline)}
