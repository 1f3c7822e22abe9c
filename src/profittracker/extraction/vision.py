"""
KI-Extraktion (Vision)

Schickt Screenshots an einen OpenAI-kompatiblen Chat-Completions-Endpoint
und wandelt die JSON-Antwort in ScreenshotRecords um. Die Bildanalyse
selbst passiert extern, hier wird nur Request und Antwort behandelt.

Author: Bot-Zentrale
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Iterable, List, Optional

import requests

from profittracker.domain.phase4.models import ScreenshotRecord
from profittracker.domain.phase4.payload import parse_screenshot_payload

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """KI-Aufruf fehlgeschlagen (Netzwerk, HTTP, leere Antwort)."""


SYSTEM_PROMPT = (
    "Du liest Screenshots von Grid-Trading-Bots aus. "
    "Antworte ausschließlich mit JSON im Format {\"screenshots\": [...]}. "
    "Ein Objekt pro Screenshot mit den Feldern: "
    "botName, direction (Long/Short), leverage, runtime (z. B. '1d 6h 53m'), "
    "totalInvestment, actualInvestment, extraMargin, totalProfit, totalProfitPercent, "
    "gridProfitUsdt, gridProfitPercent, trendPnl, trendPnlPercent, date, time. "
    "Zahlen ohne Einheit, fehlende Werte als null. Erfinde keine Daten."
)


def _image_part(image: bytes, mime: str) -> dict:
    encoded = base64.b64encode(image).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{encoded}"}}


def extract_screenshots(
    images: Iterable[bytes],
    *,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    api_base: Optional[str] = None,
    mime: str = "image/png",
    timeout_s: int = 60,
    session: Optional[requests.Session] = None,
) -> List[ScreenshotRecord]:
    """
    Screenshots per KI auslesen.

    Args:
        images: Bilddaten (ein Eintrag pro Screenshot)
        model: Modellname (Default: OPENAI_MODEL)
        api_key: API-Key (Default: OPENAI_API_KEY)
        api_base: Basis-URL (Default: OPENAI_API_BASE)

    Returns:
        Liste von ScreenshotRecords in Upload-Reihenfolge

    Raises:
        ExtractionError: Aufruf fehlgeschlagen
        MalformedJsonError: Antwort ist kein verwertbares JSON
    """
    api_key = api_key or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ExtractionError("OPENAI_API_KEY not set")
    api_base = (api_base or os.getenv("OPENAI_API_BASE") or "https://api.openai.com/v1").rstrip("/")
    model = model or os.getenv("OPENAI_MODEL") or "gpt-4o"

    parts = [_image_part(img, mime) for img in images]
    if not parts:
        raise ExtractionError("no images supplied")

    payload = {
        "model": model,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [{"type": "text", "text": f"{len(parts)} Screenshot(s) auslesen."}] + parts,
            },
        ],
        "temperature": 0.0,
        "response_format": {"type": "json_object"},
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    http = session or requests
    try:
        response = http.post(f"{api_base}/chat/completions", json=payload, headers=headers, timeout=timeout_s)
    except requests.RequestException as e:
        raise ExtractionError(f"OpenAI API request failed: {e}") from e
    if response.status_code >= 400:
        raise ExtractionError(f"OpenAI API error {response.status_code}: {response.text[:400]}")

    try:
        data = response.json()
        content = data["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise ExtractionError(f"OpenAI Chat Completions returned unexpected JSON: {e}") from e
    if not isinstance(content, str) or not content.strip():
        raise ExtractionError("OpenAI response had no text output")

    records = parse_screenshot_payload(content)
    logger.info(f"🤖 {len(records)} Screenshot(s) extrahiert ({model})")
    return records
