import asyncio
import logging
import os
import sys
import time
from typing import Optional

# Force ProactorEventLoop on Windows before importing Playwright (supports subprocess)
if os.name == "nt":
    try:
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())
    except Exception:
        pass

import streamlit as st

from weexbot.executor import format_amount
from weexbot.models import OrderPolicy, StatusReport
from weexbot.runtime import BotRuntime

st.set_page_config(page_title="Weex Volume Bot", page_icon="🚀", layout="wide")

# Configure terminal logging
logger = logging.getLogger("weexbot")
if not logger.handlers:
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

PRIMARY = "#0E7CFF"
BG_GRADIENT = (
    "linear-gradient(135deg, rgba(14,124,255,0.12) 0%, rgba(2,6,23,0.85) 40%, "
    "rgba(2,6,23,0.95) 100%)"
)

CUSTOM_CSS = f"""
<style>
    .stApp {{
        background: {BG_GRADIENT};
        color: #E6EDF3;
        font-family: 'Inter', system-ui, -apple-system, Segoe UI, Roboto, Ubuntu, Cantarell, Noto Sans, Helvetica Neue, Arial;
    }}
    .metric-card {{
        background: rgba(255,255,255,0.06);
        border: 1px solid rgba(255,255,255,0.12);
        border-radius: 16px;
        padding: 16px 18px;
        box-shadow: 0 8px 24px rgba(0,0,0,0.25);
    }}
    .grid {{ display: grid; grid-template-columns: repeat(12, 1fr); gap: 16px; }}
    .col-3 {{ grid-column: span 3; }}
    .col-12 {{ grid-column: span 12; }}
    .title {{ font-weight: 700; font-size: 28px; letter-spacing: 0.3px; }}
    .subtitle {{ font-weight: 500; opacity: .8; margin-top: 4px; }}
    .label {{ opacity: .7; font-size: 12px; }}
    .value {{ font-weight: 700; font-size: 20px; }}
    .good {{ color: #16C784; }}
    .bad {{ color: #EA3943; }}
    .pill {{ display:inline-block; padding:4px 10px; border-radius:999px; background: rgba(255,255,255,0.08); border:1px solid rgba(255,255,255,0.12); }}
</style>
"""

st.markdown(CUSTOM_CSS, unsafe_allow_html=True)

st.markdown("""
<div class="grid">
    <div class="col-12">
        <div class="title">Weex Volume Bot <span class="pill">Control Panel</span></div>
        <div class="subtitle">Open, hold and close positions on the Weex trade tab in your Edge window</div>
    </div>
</div>
""", unsafe_allow_html=True)


def get_runtime() -> BotRuntime:
    if "_runtime" not in st.session_state or st.session_state._runtime is None:
        runtime = BotRuntime()
        runtime.start()
        st.session_state._runtime = runtime
    return st.session_state._runtime


def format_status_block(report: StatusReport) -> str:
    running_cls = "good" if report.running else "bad"
    balance = "-" if report.last_balance is None else f"{report.last_balance:,.2f} USDT"
    return f"""
    <div class="metric-card">
      <div class="label">Bot</div>
      <div class="grid">
         <div class="col-3"><div class="label">State</div><div class="value {running_cls}">{report.scheduler_state.value.upper()}</div></div>
         <div class="col-3"><div class="label">Total Volume</div><div class="value">${report.total_volume:,.0f}</div></div>
         <div class="col-3"><div class="label">Target Progress</div><div class="value">{report.progress_pct:.2f}%</div></div>
         <div class="col-3"><div class="label">Available Balance</div><div class="value">{balance}</div></div>
      </div>
    </div>
    """


def format_position_block(report: StatusReport) -> str:
    pos = report.position
    errors = f"Balance errors: {report.balance_errors} · Button errors: {report.button_errors}"
    if pos is None:
        return f"<div class='metric-card'>No current position<div class='label'>{errors}</div></div>"
    side_cls = "good" if pos.side.value == "long" else "bad"
    return f"""
    <div class="metric-card">
      <div class="label">Current Position</div>
      <div class="grid">
         <div class="col-3"><div class="label">Side</div><div class="value {side_cls}">{pos.side.value.upper()}</div></div>
         <div class="col-3"><div class="label">Amount</div><div class="value">{format_amount(pos.amount)} USDT</div></div>
         <div class="col-3"><div class="label">Held</div><div class="value">{round(pos.elapsed)}s</div></div>
         <div class="col-3"><div class="label">Remaining</div><div class="value">{max(0, round(pos.remaining))}s</div></div>
      </div>
      <div class="label">{errors}</div>
    </div>
    """


runtime = get_runtime()
runtime.wait_ready(timeout=1)
info = runtime.info
connected = info.get("status") == "connected"

with st.sidebar:
    st.header("Controls")
    cfg = runtime.config
    amount = st.number_input("Position amount (USDT)", min_value=1.0, value=float(cfg.position_amount), step=100.0)
    hold_min = st.number_input("Hold min (minutes)", min_value=0.0, value=cfg.hold_time_min / 60, step=0.5)
    hold_max = st.number_input("Hold max (minutes)", min_value=0.0, value=cfg.hold_time_max / 60, step=0.5)
    policies = [p.value for p in OrderPolicy]
    order_type = st.selectbox("Order type", policies, index=policies.index(cfg.order_type.value))

    if st.button("Apply settings", disabled=not connected):
        if runtime.apply_settings(amount, hold_min, hold_max, order_type):
            st.success("Settings applied")
        else:
            st.error("Some settings were rejected, see the terminal log")

    col_start, col_stop = st.columns(2)
    if col_start.button("Start", disabled=not connected):
        if not runtime.start_bot():
            st.error("Bot did not start, see the terminal log")
    if col_stop.button("Stop", disabled=not connected):
        runtime.stop_bot()
    if st.button("Refresh balance", disabled=not connected):
        runtime.status()

status_ph = st.empty()
bot_ph = st.empty()
pos_ph = st.empty()

# Simple UI update loop: read runtime state and render
last_render: Optional[StatusReport] = None
while True:
    info = runtime.info
    status, err = info.get("status"), info.get("error")
    if status == "error" and err:
        status_ph.error(err)
    elif status == "connected":
        status_ph.success("Connected to the Weex trade tab.")
    elif status == "connecting":
        status_ph.info("Connecting to Edge and attaching to the trading tab…")
    else:
        status_ph.info("Starting…")

    if status == "connected":
        report = runtime.snapshot()
        if report != last_render:
            bot_ph.markdown(format_status_block(report), unsafe_allow_html=True)
            pos_ph.markdown(format_position_block(report), unsafe_allow_html=True)
            last_render = report
    time.sleep(1.0)
