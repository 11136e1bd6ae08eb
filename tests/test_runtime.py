import threading

import pytest

from tests.support import FakeSurface, build_weex_page
from weexbot.models import OrderPolicy, SchedulerState
from weexbot.runtime import BotRuntime


async def weex_surface():
    return build_weex_page(FakeSurface())


async def broken_surface():
    raise RuntimeError("Edge CDP not available")


@pytest.fixture
def runtime(fast_config):
    rt = BotRuntime(config=fast_config, surface_factory=weex_surface, call_timeout=5.0)
    rt.start()
    assert rt.wait_ready(timeout=5)
    yield rt
    rt.shutdown()
    rt._thread.join(timeout=5)


def test_connects_and_runs_calls_on_loop_thread(runtime):
    assert runtime.info["status"] == "connected"
    assert runtime.call(lambda c: threading.current_thread().name) == "weexbot-loop"

    report = runtime.snapshot()
    assert not report.running
    assert report.scheduler_state is SchedulerState.STOPPED


def test_start_and_stop_bot(runtime):
    assert runtime.start_bot() is True
    assert runtime.snapshot().running

    runtime.stop_bot()

    report = runtime.snapshot()
    assert not report.running
    assert report.position is None


def test_apply_settings_refreshes_config_even_when_a_setter_rejects(runtime):
    assert runtime.apply_settings(20000, 10, 5, "short_only") is False

    assert runtime.config.position_amount == 20000
    assert runtime.config.order_type is OrderPolicy.SHORT_ONLY
    assert runtime.config.hold_time_min == 360
    assert runtime.config == runtime.call(lambda c: c.config)


def test_apply_settings_all_valid(runtime):
    assert runtime.apply_settings(1000, 1, 2, "alternating") is True
    assert runtime.config.hold_time_max == 120
    assert runtime.config.order_type is OrderPolicy.ALTERNATING


def test_shutdown_stops_running_bot_and_loop(fast_config):
    rt = BotRuntime(config=fast_config, surface_factory=weex_surface, call_timeout=5.0)
    rt.start()
    assert rt.wait_ready(timeout=5)
    assert rt.start_bot()
    controller = rt.controller

    rt.shutdown()
    rt._thread.join(timeout=5)

    assert not rt._thread.is_alive()
    assert not controller.running


def test_attach_failure_is_reported(fast_config):
    rt = BotRuntime(config=fast_config, surface_factory=broken_surface)
    rt.start()
    assert rt.wait_ready(timeout=5)
    rt._thread.join(timeout=5)

    info = rt.info
    assert info["status"] == "error"
    assert "Edge CDP not available" in info["error"]
    with pytest.raises(RuntimeError, match="not connected"):
        rt.snapshot()
