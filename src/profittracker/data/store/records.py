"""
Update Record Store

Persistiert berechnete Updates pro Bot-Typ-Linie. Jede Linie hat eine
monoton steigende ``version``; das ``date`` der Startmetrik bleibt für
alle Folge-Updates fixiert.

Backends:
- MemoryRecordStore (Tests, Streamlit-Session)
- JsonRecordStore (eine JSON-Datei, atomar geschrieben)

Author: Bot-Zentrale
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from profittracker.domain.phase4.calculator import parse_iso_timestamp
from profittracker.domain.phase4.models import StoredUpdate, UpdateRecord

logger = logging.getLogger(__name__)

STORE_FORMAT = 1


class StoreError(Exception):
    """Lesen/Schreiben des Stores fehlgeschlagen."""


def atomic_write_json(path: Path, payload: Any) -> None:
    """JSON über eine Temp-Datei + ``os.replace`` schreiben; die Temp-Datei bleibt nie liegen."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


def record_day(update: StoredUpdate) -> Optional[date]:
    """Kalendertag eines Updates: uploadedAt, sonst das gespeicherte date."""
    stamp = parse_iso_timestamp(update.values.get("uploadedAt"))
    if stamp is not None:
        return stamp.date()
    stamp = parse_iso_timestamp(update.values.get("date"))
    return stamp.date() if stamp is not None else None


class UpdateRecordStore:
    """Gemeinsame Logik; Backends implementieren ``_read`` und ``_write``."""

    def __init__(self):
        self._lock = threading.RLock()

    # --- Backend ---
    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        raise NotImplementedError

    def _write(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        raise NotImplementedError

    # --- Lesen ---
    def lineages(self) -> List[str]:
        with self._lock:
            return sorted(name for name, items in self._read().items() if items)

    def updates(self, lineage: str) -> List[StoredUpdate]:
        """Alle Updates einer Linie, neuestes zuerst."""
        with self._lock:
            items = [StoredUpdate.from_dict(d) for d in self._read().get(lineage, [])]
        return sorted(items, key=lambda u: u.version, reverse=True)

    def latest(self, lineage: str) -> Optional[StoredUpdate]:
        items = self.updates(lineage)
        return items[0] if items else None

    def all_updates(self) -> List[StoredUpdate]:
        with self._lock:
            data = self._read()
        return [StoredUpdate.from_dict(d) for items in data.values() for d in items]

    def in_range(self, start: Optional[date] = None, end: Optional[date] = None) -> List[StoredUpdate]:
        """Updates mit Kalendertag in [start, end] (Grenzen inklusive)."""
        out = []
        for update in self.all_updates():
            day = record_day(update)
            if day is None:
                continue
            if start is not None and day < start:
                continue
            if end is not None and day > end:
                continue
            out.append(update)
        return sorted(out, key=lambda u: (record_day(u), u.lineage, u.version))

    # --- Schreiben ---
    def append(
        self,
        lineage: str,
        record: Union[UpdateRecord, Mapping[str, Any]],
        baseline: Optional[Mapping[str, str]] = None,
    ) -> StoredUpdate:
        """
        Hängt ein Update an die Linie an.

        Vergibt die nächste Version und fixiert ``date`` auf das Datum
        der ersten Update der Linie.

        Args:
            lineage: Bot-Typ-Name
            record: UpdateRecord oder flaches Wire-Dict
            baseline: absolute Summen (Default: aus dem UpdateRecord)

        Returns:
            gespeichertes Update
        """
        if not lineage or not str(lineage).strip():
            raise StoreError("lineage must not be empty")
        lineage = str(lineage).strip()

        if isinstance(record, UpdateRecord):
            values = record.to_wire()
            base = dict(baseline or record.baseline)
        else:
            values = dict(record)
            base = dict(baseline or {})

        with self._lock:
            data = self._read()
            items = data.setdefault(lineage, [])
            existing = [StoredUpdate.from_dict(d) for d in items]
            if existing:
                first = min(existing, key=lambda u: u.version)
                if first.values.get("date"):
                    values["date"] = first.values["date"]
            values["version"] = max((u.version for u in existing), default=0) + 1

            stored = StoredUpdate(
                values=values,
                baseline={k: str(v) for k, v in base.items()},
                lineage=lineage,
                id=uuid.uuid4().hex[:12],
                created_at=datetime.now().isoformat(timespec="seconds"),
            )
            items.append(stored.to_dict())
            self._write(data)

        logger.info(f"💾 Update gespeichert: {lineage} v{values['version']} ({values.get('status')})")
        return stored

    def delete(self, lineage: str, update_id: str) -> bool:
        with self._lock:
            data = self._read()
            items = data.get(lineage, [])
            kept = [d for d in items if d.get("id") != update_id]
            if len(kept) == len(items):
                return False
            if kept:
                data[lineage] = kept
            else:
                data.pop(lineage, None)
            self._write(data)
        logger.info(f"🗑️ Update {update_id} aus {lineage} gelöscht")
        return True


class MemoryRecordStore(UpdateRecordStore):
    def __init__(self):
        super().__init__()
        self._data: Dict[str, List[Dict[str, Any]]] = {}

    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        return json.loads(json.dumps(self._data))

    def _write(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        self._data = json.loads(json.dumps(data))


class JsonRecordStore(UpdateRecordStore):
    """Eine JSON-Datei: {"format": 1, "lineages": {name: [update, ...]}}"""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    def _read(self) -> Dict[str, List[Dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"❌ Store nicht lesbar: {self.path}: {e}")
            raise StoreError(f"Could not read {self.path}: {e}") from e
        lineages = raw.get("lineages", {}) if isinstance(raw, dict) else {}
        return {str(k): list(v) for k, v in lineages.items() if isinstance(v, list)}

    def _write(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        payload = {"format": STORE_FORMAT, "lineages": data}
        try:
            atomic_write_json(self.path, payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"❌ Store nicht schreibbar: {self.path}: {e}")
            raise StoreError(f"Could not write {self.path}: {e}") from e
