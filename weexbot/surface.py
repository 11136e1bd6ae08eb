"""Abstract view of the trading page plus the Playwright-backed implementation.

The core only ever talks to a ``Surface``: it queries elements by selector,
reads their rendered text, clicks them and sets input values. Anything that
satisfies these protocols (a real browser tab, an in-memory fake) can drive
the bot.
"""
from typing import List, Protocol, Sequence

from playwright.async_api import Locator, Page

from weexbot.logs import log_debug


class Resource(Protocol):
    async def text(self) -> str: ...

    async def activate(self) -> None: ...

    async def set_value(self, value: str) -> None: ...

    async def notify_changed(self) -> None: ...

    async def outer_html(self) -> str: ...


class Surface(Protocol):
    async def query(self, selector: str) -> Sequence[Resource]: ...


class PlaywrightResource:
    """A single element on the page, wrapped around a Playwright locator."""

    def __init__(self, locator: Locator):
        self.locator = locator

    async def text(self) -> str:
        try:
            txt = await self.locator.inner_text(timeout=800)
        except Exception:
            txt = await self.locator.text_content(timeout=800)
        return txt or ""

    async def activate(self) -> None:
        try:
            await self.locator.click(timeout=1500)
        except Exception as e:
            # Overlays and tooltips intercept pointer events; a DOM click still reaches the handler
            log_debug(f"Click failed ({e}), falling back to element.click()")
            await self.locator.evaluate("el => el.click()")

    async def set_value(self, value: str) -> None:
        await self.locator.evaluate("(el, v) => { el.value = v; }", value)

    async def notify_changed(self) -> None:
        await self.locator.dispatch_event("input")
        await self.locator.dispatch_event("change")

    async def outer_html(self) -> str:
        try:
            return await self.locator.evaluate("el => el.outerHTML")
        except Exception:
            return ""


class PlaywrightSurface:
    def __init__(self, page: Page):
        self.page = page

    async def query(self, selector: str) -> List[PlaywrightResource]:
        locators = await self.page.locator(selector).all()
        return [PlaywrightResource(loc) for loc in locators]
