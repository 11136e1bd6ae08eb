"""Run a BotController on its own event loop in a background thread.

Synchronous callers (the Streamlit dashboard) never touch bot state directly:
every read and write is scheduled onto the loop thread, so the runtime state
only ever has one writer.
"""
import asyncio
import threading
from typing import Any, Awaitable, Callable, Dict, Optional

from playwright.async_api import async_playwright

from weexbot import settings
from weexbot.browser import connect_to_edge_existing_tab, ensure_edge_cdp_ready
from weexbot.controller import BotController
from weexbot.logs import log, log_error
from weexbot.models import BotConfig, StatusReport
from weexbot.surface import PlaywrightSurface, Surface

SurfaceFactory = Callable[[], Awaitable[Surface]]


class BotRuntime:
    def __init__(self, config: Optional[BotConfig] = None, surface_factory: Optional[SurfaceFactory] = None,
                 call_timeout: float = 30.0):
        self.config = config or settings.load_config()
        self.surface_factory = surface_factory or self._attach_edge
        self.call_timeout = call_timeout
        self.controller: Optional[BotController] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._info: Dict[str, Any] = {"status": "starting", "error": None}
        self._playwright = None

    @property
    def info(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._info)

    def _set_info(self, **kwargs: Any) -> None:
        with self._lock:
            self._info.update(kwargs)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._worker, name="weexbot-loop", daemon=True)
        self._thread.start()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        return self._ready.wait(timeout)

    def _worker(self) -> None:
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        try:
            self._set_info(status="connecting", error=None)
            surface = self.loop.run_until_complete(self.surface_factory())
            self.controller = BotController(surface, self.config)
            self._set_info(status="connected")
            log("Connected. Bot controls ready.")
        except Exception as e:
            self._set_info(status="error", error=f"Attach failed: {e}")
            log_error(f"Attach failed: {e}")
            self._ready.set()
            return
        self._ready.set()
        self.loop.run_forever()

    async def _attach_edge(self) -> Surface:
        ok = await asyncio.to_thread(
            ensure_edge_cdp_ready, settings.WEEX_TRADE_URL, settings.CDP_PORT, settings.env_flag("EDGE_ALLOW_KILL")
        )
        if not ok:
            raise RuntimeError(f"Edge CDP not available. Start Edge with --remote-debugging-port={settings.CDP_PORT}")
        self._playwright = await async_playwright().start()
        page = await connect_to_edge_existing_tab(self._playwright, settings.WEEX_TRADE_URL, settings.CDP_PORT)
        return PlaywrightSurface(page)

    def _require_controller(self) -> BotController:
        if self.controller is None or self.loop is None:
            raise RuntimeError("Bot runtime is not connected")
        return self.controller

    def run(self, factory: Callable[[BotController], Awaitable[Any]], timeout: Optional[float] = None) -> Any:
        """Run a coroutine built from the controller on the loop thread and wait for its result."""
        controller = self._require_controller()
        future = asyncio.run_coroutine_threadsafe(factory(controller), self.loop)
        return future.result(timeout or self.call_timeout)

    def call(self, fn: Callable[[BotController], Any], timeout: Optional[float] = None) -> Any:
        """Run a plain function against the controller on the loop thread."""

        async def _invoke(controller: BotController) -> Any:
            return fn(controller)

        return self.run(_invoke, timeout)

    def apply_settings(self, amount: float, hold_min: float, hold_max: float, order_type: str) -> bool:
        """Apply each setter in turn; the cached config always mirrors the controller afterwards."""

        def _apply(c: BotController) -> bool:
            ok = c.set_amount(amount)
            ok = c.set_hold_time(hold_min, hold_max) and ok
            ok = c.set_order_type(order_type) and ok
            self.config = c.config
            return ok

        return self.call(_apply)

    def start_bot(self) -> bool:
        return self.run(lambda c: c.start())

    def stop_bot(self) -> None:
        self.run(lambda c: c.stop())

    def status(self) -> StatusReport:
        return self.call(lambda c: c.status())

    def snapshot(self) -> StatusReport:
        return self.call(lambda c: c.snapshot())

    def shutdown(self) -> None:
        if self.loop is None:
            return
        if self.controller is not None and self.controller.running:
            self.stop_bot()
        if self._playwright is not None:
            asyncio.run_coroutine_threadsafe(self._playwright.stop(), self.loop).result(self.call_timeout)
            self._playwright = None
        self.loop.call_soon_threadsafe(self.loop.stop)
