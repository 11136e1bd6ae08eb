import asyncio
import dataclasses
import random
import time
from typing import Callable, List, Optional, Set

from weexbot.executor import OrderExecutor, format_amount
from weexbot.locator import ResourceLocator
from weexbot.logs import log, log_debug, log_error, log_success, log_warn
from weexbot.models import BotConfig, BotContext, ErrorCounters, PositionSummary, StatusReport
from weexbot.page_selectors import DEFAULT_SELECTORS, Selectors
from weexbot.reader import ValueReader
from weexbot.scheduler import PositionLifecycleScheduler
from weexbot.settings import parse_order_policy
from weexbot.surface import Resource, Surface


class BotController:
    """Start/stop/status and configuration for one bot instance on one surface."""

    def __init__(self, surface: Surface, config: Optional[BotConfig] = None,
                 selectors: Selectors = DEFAULT_SELECTORS, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.ctx = BotContext(config=config or BotConfig())
        self.surface = surface
        self.selectors = selectors
        cfg = self.ctx.config
        self.locator = ResourceLocator(surface, poll_interval=cfg.poll_interval, timeout=cfg.locate_timeout)
        self.balance_reader = ValueReader(
            self.locator,
            selectors.available_balance,
            label="balance",
            attempts=cfg.read_attempts,
            retry_delay=cfg.read_retry_delay,
            timeout=cfg.locate_timeout,
            on_exhausted=self._count_balance_error,
        )
        self.executor = OrderExecutor(self.ctx, self.locator, self.balance_reader, selectors, rng=rng, clock=clock)
        self.scheduler = PositionLifecycleScheduler(self.ctx, self.executor, clock=clock)
        self.clock = clock
        self._tasks: Set[asyncio.Task] = set()

    @property
    def config(self) -> BotConfig:
        return self.ctx.config

    @property
    def running(self) -> bool:
        return self.ctx.state.running

    def _count_balance_error(self) -> None:
        self.ctx.state.errors.balance_errors += 1

    async def start(self) -> bool:
        state = self.ctx.state
        if state.running:
            log_warn("Bot is already running")
            return False

        log("Starting Weex Volume Bot...")
        balance = await self.balance_reader.read()
        if balance is None:
            log_error("Could not determine available balance. Check if you are on the correct page.")
            return False

        cfg = self.ctx.config
        if balance < cfg.required_margin:
            log_error(f"Insufficient balance: {balance} USDT < {cfg.required_margin:.2f} Required USDT "
                      f"({cfg.position_amount} USDT with leverage {cfg.leverage}x)")
            return False

        state.errors = ErrorCounters()
        state.last_balance = balance
        log_success(f"Starting bot with available balance: {balance} USDT")
        log(f"Configuration: {cfg.symbol}, leverage: {cfg.leverage}x, amount: {format_amount(cfg.position_amount)} USDT, "
            f"order type: {cfg.order_type.value}")
        log(f"Hold time: {cfg.hold_time_min / 60:.1f}-{cfg.hold_time_max / 60:.1f} minutes, "
            f"Target volume: ${cfg.volume_target:,.0f}")
        self.scheduler.start()
        return True

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def wait_stopped(self, poll: float = 0.5) -> None:
        while self.ctx.state.running:
            await asyncio.sleep(poll)

    def snapshot(self) -> StatusReport:
        """Current status without touching the page."""
        state = self.ctx.state
        summary = None
        position = state.current_position
        if position is not None:
            summary = PositionSummary(
                side=position.side,
                amount=position.amount,
                elapsed=self.clock() - position.opened_at,
                hold_time=position.hold_time or self.ctx.config.hold_time_min,
            )
        return StatusReport(
            running=state.running,
            scheduler_state=self.scheduler.state,
            total_volume=state.total_volume,
            volume_target=self.ctx.config.volume_target,
            progress_pct=self.ctx.progress_pct,
            position=summary,
            balance_errors=state.errors.balance_errors,
            button_errors=state.errors.button_errors,
            last_balance=state.last_balance,
        )

    def status(self) -> StatusReport:
        """Log the current status and refresh the balance in the background."""
        report = self.snapshot()
        log(f"Bot running: {report.running} ({report.scheduler_state.value})")
        log(f"Total volume: ${report.total_volume:,.0f} USDT ({report.progress_pct:.2f}% of target)")
        if report.position is not None:
            pos = report.position
            log(f"Current position: {pos.side.value} {format_amount(pos.amount)} USDT, opened {round(pos.elapsed)}s ago")
            log(f"Holding position for: {pos.hold_time / 60:.1f} minutes, remaining: {round(pos.remaining)}s")
        else:
            log("No current position")
        log(f"Balance errors: {report.balance_errors}, Button errors: {report.button_errors}")

        task = asyncio.get_running_loop().create_task(self._refresh_balance())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return report

    async def _refresh_balance(self) -> Optional[float]:
        balance = await self.balance_reader.read()
        if balance is not None:
            self.ctx.state.last_balance = balance
            log_success(f"Available balance: {balance} USDT")
        return balance

    async def get_balance(self) -> Optional[float]:
        return await self._refresh_balance()

    async def test_close_button(self) -> bool:
        """Check that the Flash close button can be found; list likely candidates if not."""
        log_warn("Testing Flash close button detection...")
        button = await self.executor.find_close_button()
        if button is not None:
            log_success(f'Found Flash close button: "{(await button.text()).strip()}"')
            log_debug(f"Button HTML: {await button.outer_html()}")
            return True

        candidates = await self.close_candidates()
        if candidates:
            for txt in candidates:
                log(f'Potential button: "{txt}"')
        else:
            log_error('No relevant buttons found with "close" or "flash" text')
        return False

    async def close_candidates(self) -> List[str]:
        buttons: List[Resource] = list(await self.surface.query(self.selectors.generic_buttons))
        log(f"Scanning {len(buttons)} potential buttons...")
        found = []
        for btn in buttons:
            txt = (await btn.text() or "").strip()
            low = txt.lower()
            if "close" in low or "flash" in low:
                found.append(txt)
        return found

    # --- configuration setters ---

    def set_amount(self, amount: float) -> bool:
        if amount <= 0:
            log_error(f"Invalid position amount: {amount}")
            return False
        self.ctx.config = dataclasses.replace(self.ctx.config, position_amount=float(amount))
        log(f"Position amount set to {format_amount(amount)} USDT")
        return True

    def set_hold_time(self, min_minutes: float, max_minutes: Optional[float] = None) -> bool:
        if max_minutes is None:
            max_minutes = min_minutes
            label = f"fixed {min_minutes} minutes"
        else:
            label = f"random {min_minutes}-{max_minutes} minutes"
        if min_minutes < 0 or max_minutes < min_minutes:
            log_error(f"Invalid hold time range: {min_minutes}-{max_minutes} minutes")
            return False
        self.ctx.config = dataclasses.replace(
            self.ctx.config, hold_time_min=min_minutes * 60, hold_time_max=max_minutes * 60
        )
        log(f"Hold time set to {label}")
        return True

    def set_order_type(self, name: str) -> bool:
        policy = parse_order_policy(name)
        if policy is None:
            log_error("Invalid order type. Valid options are: long_only, short_only, alternating")
            return False
        self.ctx.config = dataclasses.replace(self.ctx.config, order_type=policy)
        log_success(f"Order type set to: {policy.value}")
        return True
