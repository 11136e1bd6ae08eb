import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from weexbot.models import BotConfig, OrderPolicy

PROJECT_ROOT = Path(__file__).resolve().parent.parent
# Load .env configuration early
load_dotenv(PROJECT_ROOT / ".env")

DEFAULT_TRADE_URL = "https://www.weex.com/futures/BTC-USDT"
WEEX_TRADE_URL = os.getenv("WEEX_TRADE_URL") or DEFAULT_TRADE_URL
CDP_PORT = int(os.getenv("CDP_PORT", "9222") or "9222")
RPA_DIAG = (os.getenv("RPA_DIAG", "0").strip().lower() in ("1", "true", "yes"))
LOG_DIR = PROJECT_ROOT / "debuuug"

ORDER_TYPE_ALIASES = {
    "long_and_short": OrderPolicy.ALTERNATING,
}


def env_flag(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or default).strip().lower() in ("1", "true", "yes")


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def parse_order_policy(name: Optional[str]) -> Optional[OrderPolicy]:
    """Map 'long_only' / 'short_only' / 'alternating' (or 'long_and_short') to a policy."""
    key = (name or "").strip().lower()
    if key in ORDER_TYPE_ALIASES:
        return ORDER_TYPE_ALIASES[key]
    try:
        return OrderPolicy(key)
    except ValueError:
        return None


def load_config() -> BotConfig:
    defaults = BotConfig()
    hold_min = _env_float("WEEX_HOLD_MIN_MINUTES", defaults.hold_time_min / 60) * 60
    hold_max = _env_float("WEEX_HOLD_MAX_MINUTES", defaults.hold_time_max / 60) * 60
    return BotConfig(
        symbol=(os.getenv("WEEX_SYMBOL") or defaults.symbol).strip(),
        leverage=_env_float("WEEX_LEVERAGE", defaults.leverage),
        position_amount=_env_float("WEEX_POSITION_AMOUNT", defaults.position_amount),
        hold_time_min=hold_min,
        hold_time_max=max(hold_min, hold_max),
        volume_target=_env_float("WEEX_VOLUME_TARGET", defaults.volume_target),
        order_type=parse_order_policy(os.getenv("WEEX_ORDER_TYPE")) or defaults.order_type,
    )
