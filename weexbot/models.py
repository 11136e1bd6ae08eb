from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class OrderPolicy(str, Enum):
    LONG_ONLY = "long_only"
    SHORT_ONLY = "short_only"
    ALTERNATING = "alternating"


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class Action(str, Enum):
    OPEN_LONG = "open_long"
    OPEN_SHORT = "open_short"
    CLOSE_POSITION = "close_position"

    @property
    def side(self) -> Optional[Side]:
        if self is Action.OPEN_LONG:
            return Side.LONG
        if self is Action.OPEN_SHORT:
            return Side.SHORT
        return None

    @classmethod
    def open_for(cls, side: Side) -> "Action":
        return cls.OPEN_LONG if side is Side.LONG else cls.OPEN_SHORT


class SchedulerState(str, Enum):
    IDLE = "idle"
    HOLDING = "holding"
    STOPPED = "stopped"


class FailureReason(str, Enum):
    READ_FAILURE = "read_failure"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    NOT_FOUND = "not_found"
    INCONSISTENT_STATE = "inconsistent_state"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    reason: Optional[FailureReason] = None
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> "ActionResult":
        return cls(ok=True, message=message)

    @classmethod
    def failure(cls, reason: FailureReason, message: str = "") -> "ActionResult":
        return cls(ok=False, reason=reason, message=message)


@dataclass(frozen=True)
class BotConfig:
    symbol: str = "BTC-USDT"
    leverage: float = 50
    position_amount: float = 15000
    hold_time_min: float = 6 * 60  # seconds
    hold_time_max: float = 7 * 60
    volume_target: float = 50_000_000
    order_type: OrderPolicy = OrderPolicy.LONG_ONLY

    tick_interval: float = 2.0
    reopen_delay: float = 1.0
    poll_interval: float = 0.1
    locate_timeout: float = 2.0
    read_attempts: int = 3
    read_retry_delay: float = 0.5

    @property
    def required_margin(self) -> float:
        return self.position_amount / self.leverage


@dataclass
class Position:
    order_id: str
    opened_at: float
    amount: float
    volume: float
    hold_time: float
    side: Side


@dataclass
class ErrorCounters:
    balance_errors: int = 0
    button_errors: int = 0


@dataclass
class RuntimeState:
    running: bool = False
    total_volume: float = 0.0
    current_position: Optional[Position] = None
    timer_task: Optional[asyncio.Task] = None
    errors: ErrorCounters = field(default_factory=ErrorCounters)
    last_order_type: Optional[Action] = None
    last_balance: Optional[float] = None


@dataclass
class BotContext:
    """Configuration plus mutable runtime state for one bot instance."""

    config: BotConfig = field(default_factory=BotConfig)
    state: RuntimeState = field(default_factory=RuntimeState)

    @property
    def progress_pct(self) -> float:
        target = self.config.volume_target
        if target <= 0:
            return 0.0
        return self.state.total_volume / target * 100


@dataclass(frozen=True)
class PositionSummary:
    side: Side
    amount: float
    elapsed: float
    hold_time: float

    @property
    def remaining(self) -> float:
        return self.hold_time - self.elapsed


@dataclass(frozen=True)
class StatusReport:
    running: bool
    scheduler_state: SchedulerState
    total_volume: float
    volume_target: float
    progress_pct: float
    position: Optional[PositionSummary]
    balance_errors: int
    button_errors: int
    last_balance: Optional[float]
