import json
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pandas as pd
import streamlit as st

sys.path.insert(0, str(Path(__file__).parent / "src"))

from profittracker._version import __version__
from profittracker.alerts.sync import SyncPoller, build_watchlist_sync
from profittracker.common.logging_setup import setup_logging
from profittracker.config import load_config
from profittracker.data.store.records import JsonRecordStore
from profittracker.domain.phase4 import Phase4Error, run_phase4, screenshot_to_dict
from profittracker.extraction.vision import ExtractionError, extract_screenshots
from profittracker.reports.charts import profit_by_bot_figure, profit_by_date_figure
from profittracker.reports.summary import build_report

# ===== CONFIG =====
PAGE_TITLE = "Bot-Zentrale - Profit Tracker"
DEFAULT_RANGE_DAYS = 30
MODE_OPTIONS = ["Neu", "Vergleich"]
CATEGORIES = [
    ("investment", "Investment"),
    ("profit", "Gesamtprofit"),
    ("trend", "Trend P&L"),
    ("grid", "Grid Profit"),
]

CONFIG = load_config()
setup_logging(CONFIG.log_path, CONFIG.log_level)


@st.cache_resource
def get_store():
    return JsonRecordStore(CONFIG.store_path)


def get_poller():
    """Ein Sync-Poller pro Session; nur neu gestartet, wenn er nicht läuft."""
    poller = st.session_state.get('sync_poller')
    if poller is None:
        sync = build_watchlist_sync(CONFIG)
        poller = SyncPoller(CONFIG.sync_interval_s, sync.sync)
        st.session_state.sync_poller = poller
        st.session_state.watchlist_sync = sync
    poller.ensure_running()
    return poller


def extract_uploads(files):
    """Hochgeladene Screenshots per KI auslesen -> JSON-Text für das Eingabefeld."""
    records = extract_screenshots(
        [f.getvalue() for f in files],
        model=CONFIG.openai_model,
        api_key=CONFIG.openai_api_key,
        api_base=CONFIG.openai_api_base,
        mime=files[0].type or "image/png",
    )
    return json.dumps({"screenshots": [screenshot_to_dict(r) for r in records]}, indent=2, ensure_ascii=False)


def updates_table(updates):
    rows = []
    for u in updates:
        v = u.values
        rows.append({
            'Version': u.version,
            'Hochgeladen': v.get('uploadedAt', ''),
            'Status': u.status,
            'Investment': v.get('investment'),
            'Profit': v.get('profit'),
            'Grid Profit': v.get('overallGridProfitUsdt'),
            'Ø Grid/h': v.get('avgGridProfitHour'),
            'Laufzeit': v.get('avgRuntime'),
        })
    return pd.DataFrame(rows)


# ===== STREAMLIT PAGE CONFIG =====
st.set_page_config(
    page_title=PAGE_TITLE,
    layout="wide",
    initial_sidebar_state="expanded"
)

# ===== CUSTOM CSS (Dark Theme) =====
st.markdown("""
<style>
    [data-testid="stAppViewContainer"] {
        background-color: #020617;
        color: #f1f5f9;
    }
    [data-testid="stSidebar"] {
        background-color: #0f1729;
    }
    [data-testid="metric-container"] {
        background-color: rgba(15,23,42,0.8);
        border: 1px solid rgba(255,255,255,0.06);
        border-radius: 12px;
        padding: 16px;
    }
</style>
""", unsafe_allow_html=True)

store = get_store()
poller = get_poller()

# ===== HEADER =====
col1, col2 = st.columns([3, 1])
with col1:
    st.title("🤖 Bot-Zentrale")
    st.caption("*Profit-Tracker für Grid-Trading-Bots*")
with col2:
    st.info(f"📂 {len(store.lineages())} Bot-Typen")

st.divider()

# ===== SIDEBAR: ZEITRAUM + SYNC =====
with st.sidebar:
    st.subheader("⚙️ Zeitraum")
    today = date.today()
    start = st.date_input("Von", value=today - timedelta(days=DEFAULT_RANGE_DAYS))
    end = st.date_input("Bis", value=today)

    st.markdown("---")
    st.subheader("🔄 Sync")
    status = poller.status()
    if status.error:
        st.warning(f"Letzter Sync fehlgeschlagen: {status.error}")
    elif status.last_sync_time:
        st.caption(f"Letzter Sync: {datetime.fromtimestamp(status.last_sync_time):%H:%M:%S}")
    else:
        st.caption("Noch kein Sync gelaufen")
    watchlist = st.session_state.watchlist_sync.last_state
    if watchlist is not None:
        st.caption(f"👀 {len(watchlist.pairs)} Pairs in der Watchlist")

    st.markdown("---")
    st.subheader("📖 Über dieses System")
    with st.expander("Neu vs. Vergleich", expanded=False):
        st.markdown("""
        **Neu:** Werte aus den aktuellen Screenshots, Prozent auf
        Gesamtinvestment und Investitionsmenge.

        **Vergleich:** Differenz zum letzten Update derselben Linie,
        Prozent als Wachstum gegenüber dem Vorwert.

        **Startmetrik:** wird nie mit vorherigen Updates verglichen; Version
        und Datum der Linie laufen weiter.
        """)

# ===== REPORT =====
st.subheader("📈 Report")

summary = build_report(store.all_updates(), start, end)
m1, m2, m3, m4 = st.columns(4)
m1.metric("Investment", f"{summary.total_investment:.2f} USDT")
m2.metric("Profit", f"{summary.total_profit:.2f} USDT", f"{summary.total_profit_percent:.2f}%")
m3.metric("Ø Profit/Tag", f"{summary.avg_daily_profit:.2f} USDT")
m4.metric("Updates", summary.update_count)

chart1, chart2 = st.columns(2)
with chart1:
    fig = profit_by_bot_figure(summary)
    if fig:
        st.plotly_chart(fig, use_container_width=True, config={'displayModeBar': False})
    else:
        st.info("Keine Updates im Zeitraum.")
with chart2:
    fig = profit_by_date_figure(summary)
    if fig:
        st.plotly_chart(fig, use_container_width=True, config={'displayModeBar': False})

st.markdown("---")

# ===== UPLOAD / BERECHNUNG =====
st.subheader("🧮 Neues Update berechnen")

lineages = store.lineages()
lineage = st.selectbox("Bot-Typ", options=lineages + ["➕ Neu anlegen"]) if lineages else "➕ Neu anlegen"
if lineage == "➕ Neu anlegen":
    lineage = st.text_input("Name des Bot-Typs", value="")

mode_cols = st.columns(4)
modes = {}
for (key, label), col in zip(CATEGORIES, mode_cols):
    with col:
        modes[key] = st.radio(label, MODE_OPTIONS, horizontal=True, key=f"mode_{key}")

opt1, opt2 = st.columns(2)
with opt1:
    is_start_metric = st.checkbox("Startmetrik", value=False)
with opt2:
    closed = st.checkbox("Closed Bots", value=False)

if CONFIG.ai_enabled:
    files = st.file_uploader(
        "Screenshots (KI-Auslesung)", type=["png", "jpg", "jpeg"], accept_multiple_files=True
    )
    if files and st.button("🤖 Auslesen"):
        with st.spinner("Screenshots werden ausgelesen..."):
            try:
                st.session_state.screenshot_json = extract_uploads(files)
            except (ExtractionError, Phase4Error) as e:
                st.error(f"❌ Auslesen fehlgeschlagen: {e}")
else:
    st.caption("KI-Auslesung aus: OPENAI_API_KEY nicht gesetzt. Daten als JSON einfügen.")

raw = st.text_area(
    "Screenshot-Daten (JSON)", height=200, placeholder='{"screenshots": [...]}', key="screenshot_json"
)
overrides_raw = st.text_area("Manuelle Werte (JSON, nur bei einem Screenshot)", height=80, value="{}")

if st.button("Berechnen", type="primary"):
    try:
        overrides = json.loads(overrides_raw or "{}")
    except json.JSONDecodeError as e:
        st.error(f"Manuelle Werte sind kein gültiges JSON: {e}")
        st.stop()

    payload = {
        'screenshots': raw,
        'modes': modes,
        'isStartMetric': is_start_metric,
        'manualOverrides': overrides,
        'status': 'Closed Bots' if closed else 'Update Metrics',
    }
    previous = store.latest(lineage) if lineage else None
    if previous is not None:
        payload['previousUpdateRecord'] = previous.to_dict()

    result = run_phase4(payload)
    if not result.get('success'):
        st.error(f"❌ {result.get('error')}")
        if result.get('missingFields'):
            st.caption(f"Fehlende Felder: {', '.join(result['missingFields'])}")
    else:
        st.session_state.last_result = result
        st.session_state.last_lineage = lineage

result = st.session_state.get('last_result')
if result:
    st.json(result['values'], expanded=False)
    if st.button("💾 Speichern", disabled=not st.session_state.get('last_lineage')):
        stored = store.append(st.session_state.last_lineage, result['values'], result.get('baseline'))
        st.success(f"Gespeichert als v{stored.version}")
        st.session_state.last_result = None
        st.rerun()

st.markdown("---")

# ===== HISTORIE =====
st.subheader("📋 Historie")

if not lineages:
    st.info("Noch keine Updates gespeichert.")
else:
    selected = st.selectbox("Linie", options=lineages, key="history_lineage")
    table = updates_table(store.updates(selected))
    st.dataframe(table, use_container_width=True, height=320)

st.divider()

# ===== FOOTER =====
st.markdown(f"""
<div style="text-align:center; margin-top:40px; color:#64748b; font-size:11px;">
    ⚠️ <strong>Disclaimer:</strong> Private Nutzung, keine Anlageberatung.
    Werte stammen aus Screenshots; eigene Kontrolle erforderlich.
    <br><br>
    Profit-Tracker v{__version__}
</div>
""", unsafe_allow_html=True)
