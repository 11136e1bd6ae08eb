import asyncio
from typing import Optional, Sequence

from weexbot.logs import log_debug, log_error, log_success, log_warn
from weexbot.page_selectors import Strategy
from weexbot.surface import Resource, Surface

POLL_INTERVAL = 0.1  # seconds
DEFAULT_TIMEOUT = 2.0


class ResourceLocator:
    """Polls the surface until an element shows up or the timeout runs out.

    Each ``locate`` call keeps its own start time and poll loop, so several
    searches can run side by side on the same event loop.
    """

    def __init__(self, surface: Surface, poll_interval: float = POLL_INTERVAL, timeout: float = DEFAULT_TIMEOUT):
        self.surface = surface
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def locate(self, selector: str, text_filter: Optional[str] = None,
                     timeout: Optional[float] = None) -> Optional[Resource]:
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            try:
                elements = await self.surface.query(selector)
                if text_filter is None:
                    if elements:
                        log_success(f"Found element using selector: {selector}")
                        return elements[0]
                else:
                    for el in elements:
                        txt = (await el.text() or "").strip()
                        if text_filter in txt:
                            log_success(f'Found element with text "{text_filter}"')
                            return el
            except Exception as e:
                log_error(f"Error finding element {selector}: {e}")
                return None

            if loop.time() - started >= timeout:
                suffix = f' with text "{text_filter}"' if text_filter else ""
                log_warn(f"Element not found: {selector}{suffix} (waited {timeout:.1f}s)")
                return None
            await asyncio.sleep(self.poll_interval)

    async def locate_first(self, strategies: Sequence[Strategy], scan_selector: Optional[str] = None,
                           exact_text: Optional[str] = None, timeout: Optional[float] = None) -> Optional[Resource]:
        """Try each (selector, text) strategy in order, then one brute-force scan for an exact text match."""
        for selector, text_filter in strategies:
            found = await self.locate(selector, text_filter, timeout=timeout)
            if found is not None:
                return found

        if not scan_selector or not exact_text:
            return None
        try:
            candidates = await self.surface.query(scan_selector)
            log_debug(f"Scanning {len(candidates)} generic elements for exact text {exact_text!r}")
            for el in candidates:
                if (await el.text() or "").strip() == exact_text:
                    log_success(f'Found button with exact text "{exact_text}"')
                    return el
        except Exception as e:
            log_error(f"Error scanning {scan_selector}: {e}")
        return None
