import asyncio
from typing import Callable, Optional

from weexbot.locator import ResourceLocator
from weexbot.logs import log, log_error, log_warn
from weexbot.parsing import parse_number

READ_ATTEMPTS = 3
RETRY_DELAY = 0.5  # seconds


class ValueReader:
    """Reads and parses a numeric readout (e.g. available balance) with retries."""

    def __init__(self, locator: ResourceLocator, selector: str, label: str = "balance",
                 attempts: int = READ_ATTEMPTS, retry_delay: float = RETRY_DELAY,
                 timeout: Optional[float] = None, on_exhausted: Optional[Callable[[], None]] = None):
        self.locator = locator
        self.selector = selector
        self.label = label
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.on_exhausted = on_exhausted

    async def read(self, max_attempts: Optional[int] = None) -> Optional[float]:
        attempts = self.attempts if max_attempts is None else max_attempts
        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await asyncio.sleep(self.retry_delay)
            try:
                element = await self.locator.locate(self.selector, timeout=self.timeout)
                if element is None:
                    log_warn(f"{self.label.capitalize()} element not found (attempt {attempt}/{attempts})")
                    if attempt == attempts and self.on_exhausted is not None:
                        self.on_exhausted()
                    continue

                raw = await element.text()
                log(f"Raw {self.label} text: {raw!r}")
                value = parse_number(raw)
                if value is not None:
                    return value
                log_warn(f"Could not parse {self.label} from {raw!r} (attempt {attempt}/{attempts})")
            except Exception as e:
                log_error(f"Error getting {self.label} (attempt {attempt}/{attempts}): {e}")

        log_error(f"Failed to get {self.label} after {attempts} attempts")
        return None
