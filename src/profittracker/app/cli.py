"""
Profit-Tracker CLI

Usage:
  python run.py calculate --payload upload.json --lineage "ETH Grid" [--save]
  python run.py report --from 2026-10-01 --to 2026-10-19
  python run.py history --lineage "ETH Grid"
  python run.py watch [--once]

Author: Bot-Zentrale
"""

import argparse
import json
import logging
import sys
import threading
from datetime import date
from typing import Dict, Optional

from profittracker._version import __build__, __version__
from profittracker.alerts.prices import fetch_prices
from profittracker.alerts.sync import SyncPoller, build_watchlist_sync
from profittracker.alerts.watchlist import check_prices
from profittracker.common.logging_setup import setup_logging
from profittracker.config import load_config
from profittracker.data.store.records import JsonRecordStore, StoreError
from profittracker.domain.phase4 import run_phase4
from profittracker.reports.summary import build_report

logger = logging.getLogger(__name__)


def _date_arg(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Ungültiges Datum (YYYY-MM-DD): {value}") from e


def parse_arguments(argv=None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Profit-Tracker für Grid-Trading-Bots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py calculate --payload upload.json --lineage "ETH Grid" --save
  python run.py report --from 2026-10-01 --to 2026-10-19
  python run.py watch --once
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Debug-Logging')
    sub = parser.add_subparsers(dest='command', required=True)

    calc = sub.add_parser('calculate', help='Phase-4-Berechnung für einen Upload')
    calc.add_argument('--payload', required=True, help='JSON-Datei mit dem Request')
    calc.add_argument('--lineage', help='Bot-Typ; lädt das vorherige Update aus dem Store')
    calc.add_argument('--save', action='store_true', help='Ergebnis im Store speichern')

    report = sub.add_parser('report', help='Report für einen Zeitraum')
    report.add_argument('--from', dest='start', type=_date_arg, help='Startdatum (YYYY-MM-DD)')
    report.add_argument('--to', dest='end', type=_date_arg, help='Enddatum (YYYY-MM-DD)')

    history = sub.add_parser('history', help='Updates einer Linie anzeigen')
    history.add_argument('--lineage', required=True)

    watch = sub.add_parser('watch', help='Schwellenwerte gegen Live-Preise prüfen')
    watch.add_argument('--once', action='store_true', help='Nur ein Durchlauf')

    return parser.parse_args(argv)


def cmd_calculate(args, config) -> int:
    with open(args.payload, 'r', encoding='utf-8') as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            print(f"❌ Payload ist kein gültiges JSON: {e}")
            return 1

    store = JsonRecordStore(config.store_path)
    if args.lineage and not (payload.get('previousUpdateRecord') or payload.get('previousUploadData')):
        previous = store.latest(args.lineage)
        if previous is not None:
            payload['previousUpdateRecord'] = previous.to_dict()
            logger.info(f"📂 Vorheriges Update: {args.lineage} v{previous.version}")

    result = run_phase4(payload)
    if not result.get('success'):
        print(f"❌ {result.get('error')}")
        print(f"📍 Kategorie: {result.get('category')}")
        if result.get('details'):
            print(f"   {result['details']}")
        return 1

    if args.save:
        if not args.lineage:
            print("❌ --save braucht --lineage")
            return 1
        stored = store.append(args.lineage, result['values'], result.get('baseline'))
        result['values'] = stored.values
        print(f"💾 Gespeichert als v{stored.version} ({stored.id})")

    print(json.dumps(result['values'], indent=2, ensure_ascii=False))
    return 0


def cmd_report(args, config) -> int:
    store = JsonRecordStore(config.store_path)
    summary = build_report(store.all_updates(), args.start, args.end)
    print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_history(args, config) -> int:
    store = JsonRecordStore(config.store_path)
    updates = store.updates(args.lineage)
    if not updates:
        print(f"📂 Keine Updates für {args.lineage}")
        return 0
    for u in updates:
        v = u.values
        print(
            f"v{u.version:<3} {v.get('uploadedAt', ''):<20} {u.status:<15} "
            f"Investment {v.get('investment')}  Profit {v.get('profit')}"
        )
    return 0


def cmd_watch(args, config) -> int:
    sync = build_watchlist_sync(config)
    last_prices: Dict[str, Optional[float]] = {}

    def one_pass() -> None:
        state = sync.sync()
        prices = fetch_prices(
            {p: state.market_for(p) for p in state.pairs},
            spot_base=config.price_api,
            futures_base=config.futures_api,
        )
        state, alarms = check_prices(state, prices, last_prices)
        for alarm in alarms:
            print(f"🔔 {alarm.pair_name}: {alarm.message} [{alarm.alarm_level}]")
        if alarms:
            sync.save(state)
        last_prices.update({k: v for k, v in prices.items() if v is not None})

    if args.once:
        one_pass()
        return 0

    poller = SyncPoller(config.sync_interval_s, one_pass)
    poller.start()
    try:
        threading.Event().wait()
    finally:
        poller.stop()
    return 0


COMMANDS = {
    'calculate': cmd_calculate,
    'report': cmd_report,
    'history': cmd_history,
    'watch': cmd_watch,
}


def main(argv=None) -> int:
    """Hauptfunktion."""
    args = parse_arguments(argv)
    config = load_config()
    setup_logging(config.log_path, 'DEBUG' if args.verbose else config.log_level)
    logger.info(f"Profit-Tracker {__version__} (build {__build__})")

    try:
        return COMMANDS[args.command](args, config)
    except KeyboardInterrupt:
        logger.info("Abgebrochen")
        return 130
    except StoreError as e:
        print(f"❌ Store-Fehler: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
