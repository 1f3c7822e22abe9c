"""
Closed-Bots Zeitraum

Ende = Schließzeitpunkt aus dem Screenshot, Start = Ende - Laufzeit.
Bei mehreren Screenshots: frühester Start und spätestes Ende.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .errors import ValidationError
from .models import ScreenshotRecord
from .runtime import subtract_duration

logger = logging.getLogger(__name__)

_STATUS_WORDS = re.compile(
    r"\b(closed|geschlossen|open|offen|running|laufend|beendet)\b", re.IGNORECASE
)
_US = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_TIME = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def _split(text: str) -> Tuple[str, str]:
    parts = text.replace("T", " ").split()
    date_part = parts[0] if parts else ""
    time_part = parts[1] if len(parts) > 1 else ""
    return date_part, time_part


def parse_screenshot_datetime(date_text: Optional[str], time_text: Optional[str] = "") -> Optional[datetime]:
    """
    Datum (+ Uhrzeit) aus einem Screenshot parsen.

    Unterstützt MM/DD/YYYY, TT.MM.JJJJ und YYYY-MM-DD, Uhrzeit HH:MM[:SS].
    Status-Wörter wie "closed" werden entfernt.

    Returns:
        datetime oder None
    """
    raw = f"{date_text or ''} {time_text or ''}"
    cleaned = _STATUS_WORDS.sub(" ", raw).strip()
    if not cleaned:
        return None
    date_part, time_part = _split(cleaned)

    match = _US.match(date_part)
    if match:
        month, day, year = (int(g) for g in match.groups())
    else:
        match = _DE.match(date_part)
        if match:
            day, month, year = (int(g) for g in match.groups())
        else:
            match = _ISO.match(date_part)
            if not match:
                return None
            year, month, day = (int(g) for g in match.groups())

    hour = minute = second = 0
    if time_part:
        tmatch = _TIME.match(time_part)
        if not tmatch:
            return None
        hour, minute = int(tmatch.group(1)), int(tmatch.group(2))
        second = int(tmatch.group(3) or 0)

    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def closed_bots_range(screenshots: Iterable[ScreenshotRecord]) -> Tuple[str, str]:
    """
    Start-/Enddatum für einen Closed-Bots Upload.

    Returns:
        (start_iso, end_iso) mit Sekundengenauigkeit

    Raises:
        ValidationError: Datum nicht lesbar oder Laufzeit 0
    """
    starts = []
    ends = []
    for shot in screenshots:
        end = parse_screenshot_datetime(shot.date, shot.time)
        if end is None:
            raise ValidationError(
                "Close date could not be parsed",
                details=f"{shot.bot_name or 'Screenshot'}: {shot.date!r} {shot.time!r}",
                field="date",
            )
        start = subtract_duration(end, shot.runtime)
        starts.append(start)
        ends.append(end)

    if not ends:
        raise ValidationError("No screenshots supplied", field="screenshots")

    start_iso = min(starts).isoformat(timespec="seconds")
    end_iso = max(ends).isoformat(timespec="seconds")
    logger.info(f"📅 Closed Bots Zeitraum: {start_iso} -> {end_iso}")
    return start_iso, end_iso
