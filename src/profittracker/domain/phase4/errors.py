"""
Phase 4 Fehler-Taxonomie

Alle Fehler der Berechnung sind lokal, synchron und nicht wiederholbar.
Jede Klasse trägt eine stabile ``category``, damit der Aufrufer eine
passende Meldung rendern kann.

Author: Bot-Zentrale
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class Phase4Error(Exception):
    """Basisklasse für alle Berechnungsfehler."""

    category = "error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> Dict[str, Any]:
        response: Dict[str, Any] = {"error": self.message, "category": self.category}
        if self.details:
            response["details"] = self.details
        return response


class ValidationError(Phase4Error):
    """Leerer Screenshot-Batch oder ein nicht lesbares Pflichtfeld."""

    category = "validation"

    def __init__(self, message: str, details: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message, details)
        self.field = field

    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        if self.field:
            response["field"] = self.field
        return response


class IncompleteHistoryError(Phase4Error):
    """Vergleich angefordert, aber dem vorherigen Update fehlen Felder."""

    category = "missing_history"

    def __init__(self, missing_fields: Iterable[str], categories: Iterable[str] = ()):
        self.missing_fields: List[str] = list(missing_fields)
        self.categories: List[str] = list(categories)
        message = "Previous update is missing fields required for Vergleich"
        details = f"Missing: {', '.join(self.missing_fields)}"
        if self.categories:
            details += f" (categories: {', '.join(self.categories)})"
        super().__init__(message, details)

    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        response["missingFields"] = list(self.missing_fields)
        response["categories"] = list(self.categories)
        return response


class MalformedJsonError(Phase4Error):
    """Ein serialisierter Payload (z. B. previousUploadData) ist kein gültiges JSON."""

    category = "malformed_input"

    def __init__(self, source: str, reason: str):
        super().__init__(f"Could not parse {source}", reason)
        self.source = source
