"""Attach to a logged-in Edge window over CDP and hand back the Weex trading tab."""
import asyncio
import os
import shutil
import subprocess
import time
import urllib.request
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from playwright.async_api import Browser, Page, Playwright

from weexbot import settings
from weexbot.logs import log, log_error, log_warn

HTML_SNAPSHOTS_DIR = settings.PROJECT_ROOT / "html_snapshots"


def is_cdp_available(port: int) -> bool:
    url = f"http://127.0.0.1:{port}/json/version"
    try:
        with urllib.request.urlopen(url, timeout=1) as resp:
            return resp.status == 200
    except Exception:
        return False


def start_edge_with_cdp(target_url: str, port: int) -> bool:
    """Attempt to start Microsoft Edge with remote debugging. Returns True if process launch didn't raise."""
    candidates = [
        r"C:\\Program Files (x86)\\Microsoft\\Edge\\Application\\msedge.exe",
        r"C:\\Program Files\\Microsoft\\Edge\\Application\\msedge.exe",
    ]
    edge_path = next((p for p in candidates if os.path.exists(p)), None)
    if edge_path is None:
        edge_path = shutil.which("msedge") or shutil.which("microsoft-edge")
    if edge_path is None:
        log_warn("Could not locate msedge automatically.")
        return False
    try:
        subprocess.Popen([edge_path, f"--remote-debugging-port={port}", target_url],
                         stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return True
    except Exception as e:
        log_warn(f"Failed to start Edge with CDP: {e}")
        return False


def edge_running() -> bool:
    try:
        if os.name == "nt":
            proc = subprocess.run(["tasklist", "/FI", "IMAGENAME eq msedge.exe", "/FO", "CSV", "/NH"],
                                  capture_output=True, text=True, check=False)
            out = (proc.stdout or "").strip().lower()
            return ("msedge.exe" in out) and ("no tasks" not in out)
        proc = subprocess.run(["pgrep", "-f", "msedge|microsoft-edge"], capture_output=True, text=True, check=False)
        return bool((proc.stdout or "").strip())
    except Exception:
        return False


def kill_edge_processes() -> None:
    try:
        if os.name == "nt":
            subprocess.run(["taskkill", "/IM", "msedge.exe", "/F", "/T"], capture_output=True, text=True, check=False)
        else:
            subprocess.run(["pkill", "-f", "msedge|microsoft-edge"], capture_output=True, text=True, check=False)
    except Exception as e:
        log_warn(f"Failed to stop Edge: {e}")


def wait_for_cdp(port: int, timeout_s: float = 15) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if is_cdp_available(port):
            return True
        time.sleep(0.5)
    return False


def ensure_edge_cdp_ready(target_url: str, port: int, allow_kill: bool = False) -> bool:
    """Make sure an Edge instance with CDP is listening, launching (or relaunching) it if needed."""
    if is_cdp_available(port):
        return True
    if edge_running() and allow_kill:
        log(f"🧪 No CDP on 127.0.0.1:{port}. Closing Edge to relaunch with CDP…")
        kill_edge_processes()
        time.sleep(1)
        start_edge_with_cdp(target_url, port)
        return wait_for_cdp(port, 12)
    log(f"🧪 No CDP detected on 127.0.0.1:{port}. Attempting to start Edge with CDP…")
    if start_edge_with_cdp(target_url, port) and wait_for_cdp(port, 8):
        return True
    if edge_running() and not allow_kill:
        log("Edge appears to be running without CDP. Set EDGE_ALLOW_KILL=1 in .env to let the bot "
            "close Edge and relaunch automatically, or run:")
    log(f"  msedge --remote-debugging-port={port}")
    return False


def _score_page(url: str, cookie_count: int) -> int:
    s = 0
    url = (url or "").lower()
    if "weex.com" in url:
        s += 2
    if "/futures/" in url:
        s += 3
    if "login" in url:
        s -= 5
    return s + min(cookie_count, 5)


async def _find_trade_page(browser: Browser, target_url: str) -> Optional[Page]:
    candidates: List[Page] = []
    for ctx in browser.contexts:
        for p in ctx.pages:
            url = (p.url or "").lower()
            if target_url.lower() in url or ("weex.com" in url and "/futures/" in url):
                candidates.append(p)
    if not candidates:
        return None

    best, best_score = None, None
    for p in candidates:
        try:
            cookies = await p.context.cookies()
            weex_cookies = [c for c in cookies if "weex.com" in (c.get("domain") or "")]
        except Exception:
            weex_cookies = []
        s = _score_page(p.url, len(weex_cookies))
        if best_score is None or s > best_score:
            best, best_score = p, s
    return best


async def connect_to_edge_existing_tab(playwright: Playwright, target_url: str, port: int,
                                       timeout_s: float = 20) -> Page:
    """Attach to existing Edge via CDP and return the page for the trading tab.

    Edge must be running with --remote-debugging-port. No new window is opened.
    """
    log(f"🌐 Attaching to existing Edge (CDP) at http://127.0.0.1:{port} …")
    try:
        browser = await playwright.chromium.connect_over_cdp(f"http://127.0.0.1:{port}")
    except Exception:
        log_error(f"Could not attach to existing Edge. Ensure Edge is started with --remote-debugging-port={port}.")
        raise
    log("✅ Connected to Edge via CDP")

    deadline = time.time() + timeout_s
    page = await _find_trade_page(browser, target_url)
    while page is None and time.time() < deadline:
        await asyncio.sleep(0.5)
        page = await _find_trade_page(browser, target_url)
    if page is None:
        raise RuntimeError(
            "Trading tab not found in existing Edge session. Make sure the URL is open in the logged-in Edge window."
        )

    try:
        await page.bring_to_front()
        await page.wait_for_load_state("domcontentloaded", timeout=5000)
    except Exception as e:
        log_warn(f"Trading tab not fully ready yet: {e}")
    return page


async def save_dom_snapshot(page: Page, label: str = "snapshot") -> Optional[Path]:
    """Save the page's HTML to html_snapshots for debugging."""
    try:
        HTML_SNAPSHOTS_DIR.mkdir(exist_ok=True)
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        p = HTML_SNAPSHOTS_DIR / f"{label}_{ts}.html"
        p.write_text(await page.content(), encoding="utf-8")
        log(f"🧾 Saved DOM snapshot: {p}")
        return p
    except Exception as e:
        log_warn(f"Failed to save DOM snapshot: {e}")
        return None
