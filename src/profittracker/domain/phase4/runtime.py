"""
Runtime Parser

Wandelt Laufzeit-Texte ("1d 6h 53m", "2 Tage 3 Stunden") in Stunden um
und zurück in das Anzeigeformat ``Nd Nh Nm``.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Optional, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

# Längste Alternative zuerst, sonst frisst "m" das "min" bzw. "s" das "sek"
_END = r"(?![a-zäöü])"
_NUM = r"(\d+(?:[.,]\d+)?)\s*"

_DAYS = re.compile(_NUM + r"(?:tagen|tage|tag|days|day|d)" + _END, re.IGNORECASE)
_HOURS = re.compile(_NUM + r"(?:stunden|stunde|std|hours|hour|hrs|hr|h)" + _END, re.IGNORECASE)
_MINUTES = re.compile(_NUM + r"(?:minuten|minutes|minute|mins|min|m)" + _END, re.IGNORECASE)
_SECONDS = re.compile(
    _NUM + r"(?:sekunden|sekunde|seconds|second|secs|sec|sek|s)" + _END, re.IGNORECASE
)

_UNITS = (
    (_DAYS, 24.0),
    (_HOURS, 1.0),
    (_MINUTES, 1.0 / 60.0),
    (_SECONDS, 1.0 / 3600.0),
)

MS_PER_HOUR = 3_600_000


def _num(token: str) -> float:
    return float(token.replace(",", "."))


def parse_duration(text: Optional[str]) -> float:
    """
    Parst einen Laufzeit-Text in Stunden.

    Unbekannte Tokens zählen 0. Ergebnis 0 bedeutet "nicht lesbar",
    der Aufrufer entscheidet, ob das ein Fehler ist.

    Args:
        text: z. B. "1d 6h 53m"

    Returns:
        Stunden als float
    """
    if not text:
        return 0.0
    s = str(text).strip()
    hours = 0.0
    for pattern, factor in _UNITS:
        for match in pattern.finditer(s):
            hours += _num(match.group(1)) * factor
    if hours == 0.0:
        logger.debug(f"Runtime nicht lesbar: {text!r}")
    return hours


def format_duration(hours: float) -> str:
    """Stunden -> "Nd Nh Nm" (ohne Tage: "Nh Nm"), auf Minuten gerundet."""
    if hours is None or not math.isfinite(hours) or hours <= 0:
        return "0h 0m"
    total_minutes = int(round(hours * 60))
    days, rest = divmod(total_minutes, 24 * 60)
    h, m = divmod(rest, 60)
    if days:
        return f"{days}d {h}h {m}m"
    return f"{h}h {m}m"


def subtract_duration(
    end: Union[datetime, int, float], hours_text: str
) -> Union[datetime, int]:
    """
    Rechnet den Start aus Ende und Laufzeit zurück.

    Reine Millisekunden-Arithmetik, keine Kalenderlogik.

    Args:
        end: Endzeitpunkt (datetime oder Epoch-Millisekunden)
        hours_text: Laufzeit-Text

    Returns:
        Start im selben Typ wie ``end``
    """
    hours = parse_duration(hours_text)
    if hours <= 0:
        raise ValidationError(
            "Runtime could not be parsed",
            details=f"Unparseable runtime: {hours_text!r}",
            field="runtime",
        )
    duration_ms = int(round(hours * MS_PER_HOUR))
    if isinstance(end, datetime):
        return end - timedelta(milliseconds=duration_ms)
    return int(end) - duration_ms
