import random
import time
from typing import Callable, Optional

from weexbot.locator import ResourceLocator
from weexbot.logs import log, log_error, log_success, log_warn
from weexbot.models import Action, ActionResult, BotContext, FailureReason, Position
from weexbot.page_selectors import DEFAULT_SELECTORS, Selectors
from weexbot.reader import ValueReader
from weexbot.surface import Resource


def format_amount(value: float) -> str:
    """Render an amount the way the order form expects it: '15000', not '15000.0'."""
    value = float(value)
    return str(int(value)) if value.is_integer() else str(value)


class OrderExecutor:
    """Opens and closes positions by driving the order panel controls."""

    def __init__(self, ctx: BotContext, locator: ResourceLocator, balance_reader: ValueReader,
                 selectors: Selectors = DEFAULT_SELECTORS, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self.ctx = ctx
        self.locator = locator
        self.balance_reader = balance_reader
        self.selectors = selectors
        self.rng = rng or random.Random()
        self.clock = clock

    async def execute(self, action: Action) -> ActionResult:
        log(f"Attempting to place {action.value} order...")
        try:
            if action is Action.CLOSE_POSITION:
                return await self._close()
            return await self._open(action)
        except Exception as e:
            log_error(f"Error during {action.value} order: {e}")
            return ActionResult.failure(FailureReason.UNEXPECTED, str(e))

    async def _open(self, action: Action) -> ActionResult:
        config = self.ctx.config
        state = self.ctx.state

        balance = await self.balance_reader.read()
        if balance is None:
            log_error("Could not determine available balance")
            return ActionResult.failure(FailureReason.READ_FAILURE, "balance unavailable")

        required = config.required_margin
        if balance < required:
            msg = (f"Insufficient balance: {balance} USDT < {required:.2f} USDT required "
                   f"({config.position_amount} USDT with leverage {config.leverage}x)")
            log_error(msg)
            return ActionResult.failure(FailureReason.INSUFFICIENT_BALANCE, msg)
        log_success(f"Available Balance: {balance} USDT (required: {required:.2f} USDT with leverage {config.leverage}x)")

        # 1. Market order mode
        market_button = await self.locator.locate(self.selectors.market_order_button, timeout=config.locate_timeout)
        if market_button is None:
            log_error("Market order button not found")
            return ActionResult.failure(FailureReason.NOT_FOUND, "market order button")
        await market_button.activate()
        log("Clicked market order button")

        # 2. Amount in USDT
        amount_input = await self.locator.locate(self.selectors.amount_input, timeout=config.locate_timeout)
        if amount_input is None:
            log_error("Amount input not found")
            return ActionResult.failure(FailureReason.NOT_FOUND, "amount input")
        await amount_input.set_value(format_amount(config.position_amount))
        await amount_input.notify_changed()
        log(f"Set amount: {format_amount(config.position_amount)} USDT")

        # 3. Open Long / Open Short
        side = action.side
        selector = self.selectors.open_long_button if action is Action.OPEN_LONG else self.selectors.open_short_button
        order_button = await self.locator.locate(selector, timeout=config.locate_timeout)
        if order_button is None:
            log_error(f"Open {side.value.capitalize()} button not found")
            return ActionResult.failure(FailureReason.NOT_FOUND, f"open {side.value} button")
        await order_button.activate()
        log_success(f"Clicked Open {side.value.capitalize()} button")

        hold_time = self.rng.uniform(config.hold_time_min, config.hold_time_max)
        volume = config.position_amount * 2
        now = self.clock()
        position = Position(
            order_id=f"ORDER_{int(now * 1000)}",
            opened_at=now,
            amount=config.position_amount,
            volume=volume,
            hold_time=hold_time,
            side=side,
        )
        state.current_position = position
        state.last_order_type = action
        state.total_volume += volume
        log_success(f"Position opened ({side.value}). Volume: {volume:,.0f} USD, "
                    f"will hold for {hold_time / 60:.1f} minutes")
        return ActionResult.success(position.order_id)

    async def find_close_button(self) -> Optional[Resource]:
        log("Looking for Flash close button...")
        sel = self.selectors
        button = await self.locator.locate_first(
            sel.close_strategies,
            scan_selector=sel.generic_buttons,
            exact_text=sel.close_button_text,
            timeout=self.ctx.config.locate_timeout,
        )
        if button is None:
            log_error("Could not find Flash close button")
            self.ctx.state.errors.button_errors += 1
        return button

    async def _close(self) -> ActionResult:
        state = self.ctx.state
        button = await self.find_close_button()
        if button is None:
            return ActionResult.failure(FailureReason.NOT_FOUND, "flash close button")

        await button.activate()
        log_success("Clicked Flash close button")

        position = state.current_position
        if position is None:
            log_warn("No current position data found while closing")
            return ActionResult.failure(FailureReason.INCONSISTENT_STATE, "no local position")

        state.total_volume += position.volume
        state.current_position = None
        log_success(f"Position closed ({position.side.value}). Total Volume: "
                    f"${state.total_volume:,.0f} / ${self.ctx.config.volume_target:,.0f}")
        return ActionResult.success(position.order_id)
