import re
from typing import Optional

from weexbot.logs import log_debug

_NON_NUMERIC = re.compile(r"[^\d.,]")
_DECIMAL = re.compile(r"^(\d+\.?\d*|\.\d+)$")


def parse_number(text: Optional[str]) -> Optional[float]:
    """Parse a display value like '1,234.56 USDT'. Commas are grouping separators.

    Returns None when nothing numeric is left after cleanup.
    """
    if not text:
        return None
    cleaned = _NON_NUMERIC.sub("", text).replace(",", "")
    log_debug(f"Parsing number from: {text!r} -> cleaned: {cleaned!r}")
    if not _DECIMAL.match(cleaned):
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None
