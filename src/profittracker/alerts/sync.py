"""
Cross-Device Sync

Lokaler Zustand ist Master, ein Relay verteilt Snapshots zwischen
Geräten. Drei Datentypen mit eigenem Zeitstempel:

- watchlist: immer Vereinigungsmenge (lokal hinzugefügte Pairs gehen nie verloren)
- thresholds: neuerer Snapshot überlagert den älteren pro Pair, eine leere
  Liste überschreibt nie lokale nicht-leere Schwellenwerte
- alarmLevels: neuerer gewinnt komplett

Gleichstand -> lokal gewinnt. Remote vom eigenen Gerät -> lokal gewinnt.
Die Merge-Funktionen sind rein (keine Uhr, kein globaler Zustand).

Author: Bot-Zentrale
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from profittracker.data.store.records import StoreError
from profittracker.data.store.replica import FileReplica, HttpReplica, TwoTierStore

from .thresholds import DEFAULT_ALARM_LEVEL_CONFIGS, AlarmLevelConfig, ThresholdConfig
from .watchlist import PairMarket, WatchlistState

logger = logging.getLogger(__name__)

Section = Dict[str, Any]
Snapshot = Dict[str, Any]

SECTIONS = ("watchlist", "thresholds", "alarmLevels")


def now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------
# Zustand <-> Snapshot
# ---------------------------


def _section_contents(state: WatchlistState) -> Dict[str, Dict[str, Any]]:
    return {
        "watchlist": {
            "watchlist": list(state.pairs),
            "pairMarketTypes": {k: v.to_dict() for k, v in state.markets.items()},
        },
        "thresholds": {
            "byPair": {k: [t.to_dict() for t in v] for k, v in state.thresholds.items()},
        },
        "alarmLevels": {
            "configs": {k: v.to_dict() for k, v in state.alarm_levels.items()},
        },
    }


def _content(section: Optional[Section]) -> Dict[str, Any]:
    if not section:
        return {}
    return {k: v for k, v in section.items() if k not in ("timestamp", "deviceId")}


def snapshot_from_state(
    state: WatchlistState,
    device_id: str,
    timestamp: int,
    previous: Optional[Snapshot] = None,
) -> Snapshot:
    """
    Zustand -> Snapshot. Nur geänderte Abschnitte bekommen einen neuen
    Zeitstempel, unveränderte behalten den alten.
    """
    previous = previous or {}
    snapshot: Snapshot = {}
    for name, content in _section_contents(state).items():
        old = previous.get(name)
        if old and _content(old) == content:
            snapshot[name] = dict(old)
        else:
            snapshot[name] = {"timestamp": int(timestamp), "deviceId": device_id, **content}
    return snapshot


def state_from_snapshot(snapshot: Optional[Snapshot]) -> WatchlistState:
    snapshot = snapshot or {}
    watch = snapshot.get("watchlist") or {}
    thresholds = (snapshot.get("thresholds") or {}).get("byPair") or {}
    levels = (snapshot.get("alarmLevels") or {}).get("configs") or {}

    alarm_levels = dict(DEFAULT_ALARM_LEVEL_CONFIGS)
    alarm_levels.update({k: AlarmLevelConfig.from_dict(v) for k, v in levels.items()})

    return WatchlistState(
        pairs=tuple(str(p) for p in watch.get("watchlist") or []),
        markets={k: PairMarket.from_dict(v) for k, v in (watch.get("pairMarketTypes") or {}).items()},
        thresholds={
            str(k): tuple(ThresholdConfig.from_dict(t) for t in (v or []))
            for k, v in thresholds.items()
        },
        alarm_levels=alarm_levels,
    )


# ---------------------------
# Merge (rein)
# ---------------------------


def _order(local: Section, remote: Section):
    """(neuer, älter); Gleichstand -> lokal gilt als neuer."""
    if int(remote.get("timestamp") or 0) > int(local.get("timestamp") or 0):
        return remote, local
    return local, remote


def _trivial(local: Optional[Section], remote: Optional[Section], device_id: str):
    if not local and not remote:
        return True, None
    if not local:
        return True, remote
    if not remote:
        return True, local
    if remote.get("deviceId") == device_id:
        return True, local
    return False, None


def _stamp(merged: Dict[str, Any], newer: Section, older: Section, device_id: str) -> Section:
    """Ergebnis gleich einer Seite -> deren Stempel, sonst neuer Stempel dieses Geräts."""
    for side in (newer, older):
        if _content(side) == merged:
            return {"timestamp": side.get("timestamp"), "deviceId": side.get("deviceId"), **merged}
    timestamp = max(int(newer.get("timestamp") or 0), int(older.get("timestamp") or 0))
    return {"timestamp": timestamp, "deviceId": device_id, **merged}


def merge_watchlist(local: Optional[Section], remote: Optional[Section], device_id: str) -> Optional[Section]:
    """Vereinigungsmenge der Pairs; Markttypen vom neueren Snapshot haben Vorrang."""
    done, result = _trivial(local, remote, device_id)
    if done:
        return result
    newer, older = _order(local, remote)

    pairs: List[str] = []
    for pair in list(newer.get("watchlist") or []) + list(older.get("watchlist") or []):
        if pair not in pairs:
            pairs.append(pair)
    markets = dict(older.get("pairMarketTypes") or {})
    markets.update(newer.get("pairMarketTypes") or {})

    return _stamp({"watchlist": pairs, "pairMarketTypes": markets}, newer, older, device_id)


def merge_thresholds(local: Optional[Section], remote: Optional[Section], device_id: str) -> Optional[Section]:
    """Neuerer überlagert pro Pair; leere Listen überschreiben keine gefüllten."""
    done, result = _trivial(local, remote, device_id)
    if done:
        return result
    newer, older = _order(local, remote)

    by_pair = {k: list(v or []) for k, v in (older.get("byPair") or {}).items()}
    for pair_id, items in (newer.get("byPair") or {}).items():
        items = list(items or [])
        if not items and by_pair.get(pair_id):
            logger.debug(f"Leere Schwellenwerte für {pair_id} ignoriert")
            continue
        by_pair[pair_id] = items

    return _stamp({"byPair": by_pair}, newer, older, device_id)


def merge_alarm_levels(local: Optional[Section], remote: Optional[Section], device_id: str) -> Optional[Section]:
    done, result = _trivial(local, remote, device_id)
    if done:
        return result
    newer, _ = _order(local, remote)
    return newer


MERGERS: Dict[str, Callable[[Optional[Section], Optional[Section], str], Optional[Section]]] = {
    "watchlist": merge_watchlist,
    "thresholds": merge_thresholds,
    "alarmLevels": merge_alarm_levels,
}


def merge_snapshots(local: Optional[Snapshot], remote: Optional[Snapshot], device_id: str) -> Snapshot:
    """
    Merged zwei Snapshots abschnittsweise.

    Args:
        local: lokaler Snapshot (Master)
        remote: Snapshot vom Relay
        device_id: ID dieses Geräts

    Returns:
        gemergter Snapshot
    """
    local = local or {}
    remote = remote or {}
    merged: Snapshot = {}
    for name in SECTIONS:
        section = MERGERS[name](local.get(name), remote.get(name), device_id)
        if section is not None:
            merged[name] = section
    return merged


# ---------------------------
# Polling
# ---------------------------


@dataclass
class SyncStatus:
    last_sync_time: Optional[float] = None
    is_syncing: bool = False
    error: Optional[str] = None


class SyncPoller:
    """
    Ruft ``tick`` alle ``interval_s`` Sekunden in einem Daemon-Thread auf.

    ``start()`` auf einem laufenden Poller ersetzt den alten Thread,
    ``stop()`` beendet und joint ihn. So bleiben nach einem Reload keine
    verwaisten Timer zurück.
    """

    def __init__(self, interval_s: float, tick: Callable[[], Any]):
        self.interval_s = float(interval_s)
        self.tick = tick
        self._status = SyncStatus()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def status(self) -> SyncStatus:
        with self._lock:
            return dataclasses.replace(self._status)

    def run_once(self) -> None:
        with self._lock:
            self._status.is_syncing = True
        try:
            self.tick()
        except Exception as e:  # Poller darf nicht sterben; Fehler landet im Status
            logger.warning(f"⚠️ Sync fehlgeschlagen: {e}")
            with self._lock:
                self._status.error = str(e)
                self._status.is_syncing = False
            return
        with self._lock:
            self._status.last_sync_time = time.time()
            self._status.error = None
            self._status.is_syncing = False

    def _loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(self.interval_s)

    def start(self) -> None:
        self.stop()
        stop_event = threading.Event()
        thread = threading.Thread(target=self._loop, args=(stop_event,), name="sync-poller", daemon=True)
        self._stop_event = stop_event
        self._thread = thread
        thread.start()
        logger.info(f"🔄 Sync-Poller gestartet ({self.interval_s}s)")

    def ensure_running(self) -> bool:
        """Startet nur, wenn kein Thread läuft. True, wenn neu gestartet wurde."""
        if self.running:
            return False
        self.start()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout if timeout is not None else self.interval_s + 5)
        self._thread = None
        self._stop_event = None


# ---------------------------
# Service
# ---------------------------


class WatchlistSync:
    """Verbindet WatchlistState mit dem Zwei-Schichten-Store."""

    def __init__(self, store: TwoTierStore, device_id: str, clock: Callable[[], int] = now_ms):
        self.store = store
        self.device_id = device_id
        self.clock = clock
        self.last_state: Optional[WatchlistState] = None
        if store.merge is None:
            store.merge = lambda local, remote: merge_snapshots(local, remote, device_id)

    def load(self) -> WatchlistState:
        return state_from_snapshot(self.store.load())

    def save(self, state: WatchlistState) -> Snapshot:
        snapshot = snapshot_from_state(state, self.device_id, self.clock(), previous=self.store.load())
        self.store.save(snapshot)
        return snapshot

    def sync(self) -> WatchlistState:
        """Remote holen und mergen. Bei Relay-Fehlern bleibt der lokale Zustand."""
        try:
            snapshot = self.store.sync()
        except StoreError as e:
            logger.warning(f"⚠️ Relay nicht erreichbar, nutze lokalen Stand: {e}")
            snapshot = self.store.load()
        self.last_state = state_from_snapshot(snapshot)
        return self.last_state


def build_watchlist_sync(config) -> WatchlistSync:
    """WatchlistSync aus AppConfig (Relay nur wenn PT_SYNC_URL gesetzt)."""
    remote = HttpReplica(config.sync_url) if config.sync_url else None
    store = TwoTierStore(FileReplica(config.watchlist_path), remote)
    return WatchlistSync(store, config.device_id)
