"""
Zwei-Schichten-Store für Sync-Snapshots

Lokale Kopie ist maßgeblich, das Remote (Datei oder HTTP-Relay) dient
nur der Verteilung auf andere Geräte. Beim Lesen wird gemerged
(merge-on-read), das Ergebnis lokal gespeichert und zurückgeschrieben.

Author: Bot-Zentrale
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import requests

from profittracker.data.store.records import StoreError, atomic_write_json

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]
MergeFn = Callable[[Snapshot, Snapshot], Snapshot]


class FileReplica:
    """JSON-Datei als Replica (lokal oder auf einem geteilten Laufwerk)."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def pull(self) -> Optional[Snapshot]:
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {self.path}: {e}") from e
        return data if isinstance(data, dict) else None

    def push(self, snapshot: Snapshot) -> None:
        try:
            atomic_write_json(self.path, snapshot)
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Could not write {self.path}: {e}") from e


class HttpReplica:
    """HTTP-Relay: GET liefert den Snapshot, PUT ersetzt ihn."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def pull(self) -> Optional[Snapshot]:
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"Sync relay not reachable: {e}") from e
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise StoreError(f"Sync relay error {response.status_code}: {response.text[:200]}")
        try:
            data = response.json()
        except ValueError as e:
            raise StoreError(f"Sync relay returned invalid JSON: {e}") from e
        return data if isinstance(data, dict) else None

    def push(self, snapshot: Snapshot) -> None:
        try:
            response = self.session.put(self.url, json=snapshot, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"Sync relay not reachable: {e}") from e
        if response.status_code >= 400:
            raise StoreError(f"Sync relay error {response.status_code}: {response.text[:200]}")


class TwoTierStore:
    """
    Lokaler Cache + optionales Remote.

    Args:
        local: maßgebliche lokale Replica
        remote: Relay (None = nur lokal)
        merge: ``merge(local, remote) -> merged``
    """

    def __init__(self, local: FileReplica, remote=None, merge: Optional[MergeFn] = None):
        self.local = local
        self.remote = remote
        self.merge = merge

    def load(self) -> Optional[Snapshot]:
        return self.local.pull()

    def save(self, snapshot: Snapshot) -> None:
        self.local.push(snapshot)
        if self.remote is not None:
            try:
                self.remote.push(snapshot)
            except StoreError as e:
                # lokal ist gespeichert, Remote holt der nächste sync() nach
                logger.warning(f"⚠️ Remote push fehlgeschlagen: {e}")

    def sync(self) -> Optional[Snapshot]:
        """
        Remote lesen, mergen, lokal speichern, Ergebnis zurückschreiben.

        Raises:
            StoreError: Remote nicht lesbar (lokal bleibt unverändert)
        """
        local = self.local.pull()
        if self.remote is None:
            return local
        remote = self.remote.pull()

        if remote is None:
            merged = local
        elif local is None:
            merged = remote
        elif self.merge is not None:
            merged = self.merge(local, remote)
        else:
            merged = local

        if merged is None:
            return None
        if merged != local:
            self.local.push(merged)
        if merged != remote:
            self.remote.push(merged)
        logger.debug("Sync abgeschlossen")
        return merged
