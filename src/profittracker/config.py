"""
Konfiguration

Liest Umgebungsvariablen (lokal aus ``.env`` via python-dotenv) in eine
unveränderliche ``AppConfig``.

Author: Bot-Zentrale
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from profittracker.data.io.paths import artifacts_dir, resolve_data_path

logger = logging.getLogger(__name__)

DEFAULT_PRICE_API = "https://api.binance.com"
DEFAULT_FUTURES_API = "https://fapi.binance.com"
DEFAULT_SYNC_INTERVAL_S = 3.5


@dataclass(frozen=True)
class AppConfig:
    data_dir: str
    store_path: str
    watchlist_path: str
    device_id: str
    sync_url: Optional[str] = None
    sync_interval_s: float = DEFAULT_SYNC_INTERVAL_S
    price_api: str = DEFAULT_PRICE_API
    futures_api: str = DEFAULT_FUTURES_API
    openai_api_key: Optional[str] = None
    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"
    log_level: str = "INFO"
    log_path: str = "logs/profittracker.log"

    @property
    def ai_enabled(self) -> bool:
        return bool(self.openai_api_key)


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw.replace(",", "."))
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} ist keine Zahl, nutze {default}")
        return default
    if value <= 0:
        logger.warning(f"⚠️ {name} muss > 0 sein, nutze {default}")
        return default
    return value


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Lädt die Konfiguration.

    Args:
        env_file: optionaler Pfad zu einer .env Datei

    Returns:
        AppConfig
    """
    load_dotenv(env_file)

    raw_dir = _env("PT_DATA_DIR")
    base = resolve_data_path(raw_dir) if raw_dir else artifacts_dir()
    data_dir = str(base)

    return AppConfig(
        data_dir=data_dir,
        store_path=str(resolve_data_path(_env("PT_STORE_PATH", str(base / "updates.json")))),
        watchlist_path=str(resolve_data_path(_env("PT_WATCHLIST_PATH", str(base / "watchlist.json")))),
        device_id=_env("PT_DEVICE_ID", socket.gethostname() or "local"),
        sync_url=_env("PT_SYNC_URL"),
        sync_interval_s=_env_float("PT_SYNC_INTERVAL_S", DEFAULT_SYNC_INTERVAL_S),
        price_api=_env("PT_PRICE_API", DEFAULT_PRICE_API).rstrip("/"),
        futures_api=_env("PT_FUTURES_API", DEFAULT_FUTURES_API).rstrip("/"),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_api_base=_env("OPENAI_API_BASE", "https://api.openai.com/v1").rstrip("/"),
        openai_model=_env("OPENAI_MODEL", "gpt-4o"),
        log_level=_env("PT_LOG_LEVEL", "INFO").upper(),
        log_path=_env("PT_LOG_PATH", "logs/profittracker.log"),
    )
