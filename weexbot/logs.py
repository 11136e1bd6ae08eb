import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from weexbot import settings

logger = logging.getLogger("weexbot")

_diag = settings.RPA_DIAG


def setup_logging(log_dir: Optional[Path] = None) -> Path:
    """Send bot output to stdout and to a timestamped file under the run-log directory."""
    log_dir = log_dir or settings.LOG_DIR
    log_dir.mkdir(exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"terminal_{timestamp}.log"
    logging.basicConfig(
        level=logging.DEBUG if _diag else logging.INFO,
        format="%(message)s",  # Just the raw message, the helpers add the prefix
        handlers=[
            logging.FileHandler(log_file, mode="w", encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )
    return log_file


def set_diagnostics(enabled: bool) -> None:
    global _diag
    _diag = enabled
    if enabled:
        logger.setLevel(logging.DEBUG)


def _line(marker: str, msg: str) -> str:
    ts = datetime.now().strftime("%H:%M:%S")
    return f"[{ts}] [BOT] {marker}{msg}"


def log(msg: str) -> None:
    logger.info(_line("", msg))


def log_success(msg: str) -> None:
    logger.info(_line("✅ ", msg))


def log_warn(msg: str) -> None:
    logger.warning(_line("⚠️ ", msg))


def log_error(msg: str) -> None:
    logger.error(_line("❌ ", msg))


def log_debug(msg: str) -> None:
    """Log debug messages (only when RPA_DIAG is enabled)."""
    if _diag:
        logger.debug(_line("🔧 ", msg))
