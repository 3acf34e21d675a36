"""
Streamlit Control Room for Cadence Coach.
Start/stop control, participant selection, session status and a live chart of
cadence against the personal baseline band.
"""
import sys
from pathlib import Path
import os
import json
import signal
import sqlite3
import subprocess
import time

import altair as alt
import pandas as pd
import streamlit as st

# --- PATH SETUP ---
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cadence_coach import config as cfg
from cadence_coach.db import fetch_last
from cadence_coach.policy import tolerance_band

# --- PAGE CONFIG ---
st.set_page_config(page_title="Cadence Coach Control Room", layout="wide", page_icon="🏃")

STATE_COLORS = {"INIT": "#9aa5a4", "OK": "#0B6F6B", "UP": "#f4a261", "DOWN": "#457b9d",
                "STOP": "#e63946", "BASELINE": "#083634"}

st.markdown("""
<style>
    .stApp { background-color: #FFFFFF; color: #083634; }
    [data-testid="stSidebar"] { background-color: #DFF5F4; }
    .status-box {
        background-color: #DFF5F4;
        border-left: 10px solid #0B6F6B;
        padding: 25px;
        border-radius: 12px;
        margin-bottom: 25px;
    }
    h3 { color: #0B6F6B !important; font-weight: 700 !important; }
</style>
""", unsafe_allow_html=True)


# --- PROCESS MANAGEMENT ---
def read_pid():
    try:
        with open(cfg.PID_FILE) as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return None


def is_running() -> bool:
    pid = read_pid()
    if pid is None:
        return False
    try:
        os.kill(pid, 0)
        return True
    except OSError:
        return False


def start_system(participant_id: int, mode: str = "live") -> None:
    stop_system()
    os.makedirs(cfg.OUT_DIR, exist_ok=True)
    with open(cfg.CONTROL_JSON, "w") as f:
        json.dump({"participant_id": int(participant_id), "mode": mode}, f)
    main_script = os.path.join(ROOT, "main.py")
    proc = subprocess.Popen([sys.executable, main_script,
                             "--participant", str(int(participant_id)), "--mode", mode], cwd=str(ROOT))
    with open(cfg.PID_FILE, "w") as f:
        f.write(str(proc.pid))
    time.sleep(1.0)


def stop_system() -> None:
    pid = read_pid()
    if pid is not None:
        try:
            os.kill(pid, signal.SIGTERM)
        except OSError:
            pass
    if os.path.exists(cfg.PID_FILE):
        os.remove(cfg.PID_FILE)


def get_log_data() -> pd.DataFrame:
    """Rows of the most recent session, oldest first."""
    if not os.path.exists(cfg.DB_PATH):
        return pd.DataFrame()
    conn = sqlite3.connect(cfg.DB_PATH)
    try:
        last = pd.read_sql_query(
            "SELECT session_id FROM cadence_log ORDER BY rowid DESC LIMIT 1", conn)
        if last.empty:
            return pd.DataFrame()
        return pd.read_sql_query(
            "SELECT * FROM cadence_log WHERE session_id = ? ORDER BY rowid",
            conn, params=(last["session_id"].iloc[0],))
    except (sqlite3.Error, pd.errors.DatabaseError):
        return pd.DataFrame()
    finally:
        conn.close()


def get_status() -> dict:
    if not os.path.exists(cfg.DB_PATH):
        return {}
    try:
        return fetch_last(Path(cfg.DB_PATH))
    except sqlite3.Error:
        return {}


# --- SIDEBAR ---
with st.sidebar:
    st.title("Control Panel")
    st.markdown("---")
    participant = st.number_input("Participant ID", min_value=1, step=1, value=1)
    app_mode = st.radio("Step Source", ["Live Sensor (Phyphox)", "Replay (Demo)"])
    mode_arg = "replay" if "Replay" in app_mode else "live"

    if is_running():
        st.success("BACKEND RUNNING")
        if st.button("⏹ STOP", use_container_width=True):
            stop_system(); st.rerun()
    else:
        st.error("BACKEND STOPPED")
        if st.button("▶ START", use_container_width=True):
            start_system(int(participant), mode_arg); st.rerun()

# --- MAIN UI ---
st.title("Cadence Coach")
status = get_status()
phase = status.get("phase") or "not started"
if not is_running():
    phase = "not started"
signal_note = " • ⚠️ no signal" if status.get("no_signal") else ""

st.markdown(f"""
<div class="status-box">
    <p style='margin:0; font-size: 14px; opacity:0.7; font-weight:bold; letter-spacing:1px;'>STATUS</p>
    <h2 style='color:#0B6F6B; margin:0; font-size: 36px; font-weight:800;'>{phase.title()}{signal_note}</h2>
    <p style='margin:0; font-size: 16px; opacity:0.8; margin-top:5px;'>{status.get('message', '')}</p>
</div>
""", unsafe_allow_html=True)

df = get_log_data()
if df.empty:
    st.info("Waiting for the baseline... the first rows appear 30 s after START.")
else:
    last = df.iloc[-1]
    baseline = int(last["baseline_cadence"])

    c1, c2, c3, c4 = st.columns(4)
    with c1: st.metric("State", str(last["cadence_state"]))
    with c2: st.metric("Cadence", f"{int(last['cadence_spm'])} SPM", delta=int(last["cadence_deviation"]))
    with c3: st.metric("Baseline", f"{baseline} SPM")
    with c4: st.metric("Elapsed", f"{int(last['elapsed_time_sec'])} s")

    col_chart, col_hist = st.columns([2.2, 1])
    with col_chart:
        st.markdown("### Cadence vs. Baseline")
        lower, upper = tolerance_band(baseline)
        band = pd.DataFrame({"lower": [lower], "upper": [upper]})
        band_rect = alt.Chart(band).mark_rect(opacity=0.15, color="#0B6F6B").encode(y="lower:Q", y2="upper:Q")
        line = alt.Chart(df).mark_line(strokeWidth=3, color="#083634").encode(
            x=alt.X("elapsed_time_sec:Q", title="Time (Seconds)"),
            y=alt.Y("cadence_spm:Q", title="Cadence (SPM)"),
        )
        dots = alt.Chart(df).mark_circle(size=80).encode(
            x="elapsed_time_sec:Q", y="cadence_spm:Q",
            color=alt.Color("cadence_state:N",
                            scale=alt.Scale(domain=list(STATE_COLORS), range=list(STATE_COLORS.values())),
                            title=None),
            tooltip=["timestamp", "cadence_spm", "cadence_deviation", "cadence_state"],
        )
        st.altair_chart((band_rect + line + dots).properties(height=420), use_container_width=True)

    with col_hist:
        st.markdown("### State Changes")
        changes = df[df["cadence_state"] != df["cadence_state"].shift(1)].tail(8).iloc[::-1]
        for _, row in changes.iterrows():
            color = STATE_COLORS.get(row["cadence_state"], "#DFF5F4")
            st.markdown(f"""
            <div style="background-color: #f8f9fa; border-left: 5px solid {color}; padding: 12px; margin-bottom: 12px; border-radius: 8px;">
                <p style="margin:0; font-weight: 800; color: #083634;">{row['cadence_state']}</p>
                <p style="margin:0; font-size: 13px; color: #666;">{row['timestamp']} • {int(row['cadence_spm'])} SPM</p>
            </div>
            """, unsafe_allow_html=True)

# Automatic refresh
if is_running():
    time.sleep(1.0)
    st.rerun()
