import random
from typing import Optional

import pytest

from tests.support import FakeClock, FakeSurface, build_weex_page
from weexbot.controller import BotController
from weexbot.models import BotConfig


@pytest.fixture
def surface() -> FakeSurface:
    return FakeSurface()


@pytest.fixture
def weex_page() -> FakeSurface:
    return build_weex_page(FakeSurface())


@pytest.fixture
def fast_config() -> BotConfig:
    return BotConfig(
        leverage=50,
        position_amount=15000,
        hold_time_min=360,
        hold_time_max=420,
        tick_interval=0.05,
        reopen_delay=0.02,
        poll_interval=0.01,
        locate_timeout=0.05,
        read_attempts=3,
        read_retry_delay=0.01,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_controller(fast_config, clock):
    def _make(page: FakeSurface, config: Optional[BotConfig] = None) -> BotController:
        return BotController(page, config or fast_config, rng=random.Random(7), clock=clock)

    return _make
