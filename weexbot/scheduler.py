"""Open / hold / close lifecycle driven by a periodic tick.

The timer fires every ``tick_interval`` seconds no matter how long the last
tick took; each tick runs as its own task. A tick (or the delayed reopen after
a close) that fires while another cycle is still running is skipped, so two
cycles never act on the order panel at the same time. Stopping waits for a
cycle that is already running before it looks for a position to close.
"""
import asyncio
import time
from typing import Callable, Coroutine, Optional, Set

from weexbot.executor import OrderExecutor
from weexbot.logs import log, log_debug, log_error, log_success, log_warn
from weexbot.models import (
    Action,
    ActionResult,
    BotContext,
    FailureReason,
    OrderPolicy,
    SchedulerState,
)


def next_open_action(policy: OrderPolicy, last_order_type: Optional[Action]) -> Action:
    if policy is OrderPolicy.LONG_ONLY:
        return Action.OPEN_LONG
    if policy is OrderPolicy.SHORT_ONLY:
        return Action.OPEN_SHORT
    if last_order_type is Action.OPEN_LONG:
        return Action.OPEN_SHORT
    return Action.OPEN_LONG


class PositionLifecycleScheduler:
    def __init__(self, ctx: BotContext, executor: OrderExecutor, clock: Callable[[], float] = time.time):
        self.ctx = ctx
        self.executor = executor
        self.clock = clock
        self._busy = False
        self._active: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SchedulerState:
        if not self.ctx.state.running:
            return SchedulerState.STOPPED
        if self.ctx.state.current_position is None:
            return SchedulerState.IDLE
        return SchedulerState.HOLDING

    def next_action(self) -> Action:
        return next_open_action(self.ctx.config.order_type, self.ctx.state.last_order_type)

    def start(self) -> None:
        state = self.ctx.state
        state.running = True
        state.timer_task = asyncio.get_running_loop().create_task(self._timer())

    async def stop(self) -> None:
        state = self.ctx.state
        if not state.running:
            log_warn("Bot is not running")
            return

        log("Stopping bot...")
        if state.timer_task is not None:
            state.timer_task.cancel()
            state.timer_task = None
        state.running = False
        await self._wait_for_cycle()

        position = state.current_position
        if position is not None:
            log_warn(f"Attempting to close final {position.side.value} position...")
            await self.executor.execute(Action.CLOSE_POSITION)

        log("Bot stopped. Final stats:")
        log_success(f"Total volume: ${state.total_volume:,.0f}")
        log(f"Balance errors: {state.errors.balance_errors}, Button errors: {state.errors.button_errors}")

    async def _wait_for_cycle(self) -> None:
        """Let an open or close that is already on the page finish before deciding what is left to close."""
        active = self._active
        if active is None or active is asyncio.current_task():
            return
        log("Waiting for the current cycle to finish...")
        await asyncio.wait({active})

    async def join(self) -> None:
        """Wait for spawned ticks and delayed reopens to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _timer(self) -> None:
        while True:
            await asyncio.sleep(self.ctx.config.tick_interval)
            self._spawn(self.tick())

    async def tick(self) -> None:
        if not self.ctx.state.running:
            return
        if self._busy:
            log_debug("Previous cycle still running; skipping tick")
            return
        self._busy = True
        self._active = asyncio.current_task()
        try:
            await self._cycle()
        except Exception as e:
            log_error(f"Error in bot cycle: {e}")
        finally:
            self._busy = False
            self._active = None

    async def _cycle(self) -> None:
        state = self.ctx.state
        position = state.current_position
        if position is None:
            action = self.next_action()
            log(f"No open position. Opening new {action.side.value} position...")
            await self._open(action)
            return

        elapsed = self.clock() - position.opened_at
        hold_time = position.hold_time or self.ctx.config.hold_time_min
        if elapsed < hold_time:
            remaining = round(hold_time - elapsed)
            log(f"{position.side.value.upper()} position open. Remaining hold time: {remaining}s. "
                f"Current Volume: ${state.total_volume:,.0f}")
            return

        log(f"Hold time reached ({hold_time / 60:.1f} minutes). Closing {position.side.value} position...")
        result = await self.executor.execute(Action.CLOSE_POSITION)
        if result.ok:
            self._spawn(self._reopen_after_delay())
        else:
            log_error("Failed to close position. Will retry in next cycle.")

    async def _open(self, action: Action) -> ActionResult:
        result = await self.executor.execute(action)
        if result.reason is FailureReason.INSUFFICIENT_BALANCE:
            log_error("Stopping bot: balance does not cover the required margin")
            await self.stop()
        return result

    async def _reopen_after_delay(self) -> None:
        await asyncio.sleep(self.ctx.config.reopen_delay)
        if not self.ctx.state.running:
            return
        if self._busy:
            log_debug("Cycle in progress; leaving the reopen to the next tick")
            return
        self._busy = True
        self._active = asyncio.current_task()
        try:
            if self.ctx.state.current_position is None:
                action = self.next_action()
                log(f"Opening new {action.side.value} position after successful close")
                await self._open(action)
        except Exception as e:
            log_error(f"Error reopening position: {e}")
        finally:
            self._busy = False
            self._active = None

