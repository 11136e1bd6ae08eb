import time
from collections import Counter
from typing import Dict, List, Optional, Sequence, Union

from weexbot.page_selectors import DEFAULT_SELECTORS

SEL = DEFAULT_SELECTORS


class FakeElement:
    """In-memory element. ``texts`` may be a list, consumed one value per read (last one sticks)."""

    def __init__(self, surface: "FakeSurface", name: str, texts: Union[str, List[str]] = "",
                 visible_at: float = 0.0, fail_on_activate: bool = False):
        self.surface = surface
        self.name = name
        self._texts = [texts] if isinstance(texts, str) else list(texts)
        self.visible_at = visible_at
        self.fail_on_activate = fail_on_activate
        self.value: Optional[str] = None
        self.events: List[str] = []

    async def text(self) -> str:
        if len(self._texts) > 1:
            return self._texts.pop(0)
        return self._texts[0] if self._texts else ""

    async def activate(self) -> None:
        if self.fail_on_activate:
            raise RuntimeError(f"{self.name} detached from DOM")
        self.surface.activations.append(self.name)

    async def set_value(self, value: str) -> None:
        self.value = value
        self.events.append("value")

    async def notify_changed(self) -> None:
        self.events.extend(["input", "change"])

    async def outer_html(self) -> str:
        return f"<button>{await self.text()}</button>"


class FakeSurface:
    def __init__(self):
        self.elements: Dict[str, List[FakeElement]] = {}
        self.queries: Counter = Counter()
        self.query_log: List[str] = []
        self.activations: List[str] = []
        self.broken: Dict[str, Exception] = {}

    def add(self, selector: str, texts: Union[str, List[str]] = "", name: Optional[str] = None,
            delay: float = 0.0, fail_on_activate: bool = False) -> FakeElement:
        el = FakeElement(self, name or selector, texts, visible_at=time.monotonic() + delay,
                         fail_on_activate=fail_on_activate)
        self.elements.setdefault(selector, []).append(el)
        return el

    def remove(self, selector: str) -> None:
        self.elements.pop(selector, None)

    async def query(self, selector: str) -> Sequence[FakeElement]:
        self.queries[selector] += 1
        self.query_log.append(selector)
        if selector in self.broken:
            raise self.broken[selector]
        now = time.monotonic()
        return [el for el in self.elements.get(selector, []) if el.visible_at <= now]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_weex_page(surface: FakeSurface, balance: str = "1,234.56 USDT") -> FakeSurface:
    surface.add(SEL.available_balance, balance, name="balance")
    surface.add(SEL.market_order_button, "Market", name="market")
    surface.add(SEL.amount_input, "", name="amount")
    surface.add(SEL.open_long_button, "Open long", name="open_long")
    surface.add(SEL.open_short_button, "Open short", name="open_short")
    surface.add(SEL.close_button, "Flash close", name="flash_close")
    return surface


