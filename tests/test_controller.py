import asyncio
import logging

import pytest

from tests.support import SEL, FakeSurface, build_weex_page
from weexbot import logs
from weexbot.models import OrderPolicy, SchedulerState, Side


@pytest.mark.asyncio
async def test_stop_when_not_running_is_a_noop(weex_page, make_controller, caplog):
    ctl = make_controller(weex_page)

    with caplog.at_level(logging.WARNING, logger="weexbot"):
        await ctl.stop()

    assert "Bot is not running" in caplog.text
    assert sum(weex_page.queries.values()) == 0
    assert weex_page.activations == []


@pytest.mark.asyncio
async def test_start_refuses_insufficient_balance(surface, make_controller):
    ctl = make_controller(build_weex_page(surface, balance="100 USDT"))

    assert await ctl.start() is False
    assert not ctl.running
    assert ctl.ctx.state.timer_task is None


@pytest.mark.asyncio
async def test_start_refuses_unreadable_balance(surface, make_controller):
    page = build_weex_page(surface, balance="n/a")

    assert await make_controller(page).start() is False


@pytest.mark.asyncio
async def test_start_resets_errors_and_runs(weex_page, make_controller, caplog):
    ctl = make_controller(weex_page)
    ctl.ctx.state.errors.button_errors = 4

    assert await ctl.start() is True
    assert ctl.running
    assert ctl.ctx.state.errors.button_errors == 0
    assert ctl.ctx.state.last_balance == pytest.approx(1234.56)

    with caplog.at_level(logging.WARNING, logger="weexbot"):
        assert await ctl.start() is False
    assert "already running" in caplog.text

    await ctl.stop()
    await ctl.scheduler.join()
    assert not ctl.running


@pytest.mark.asyncio
async def test_status_reports_progress_and_refreshes_balance(weex_page, make_controller, clock):
    ctl = make_controller(weex_page)
    ctl.ctx.state.running = True
    await ctl.scheduler.tick()
    clock.advance(30)

    report = ctl.status()
    await asyncio.gather(*list(ctl._tasks))

    assert report.running
    assert report.scheduler_state is SchedulerState.HOLDING
    assert report.total_volume == 30000
    assert report.progress_pct == pytest.approx(30000 / 50_000_000 * 100)
    assert report.position.side is Side.LONG
    assert report.position.elapsed == 30
    assert report.position.remaining == pytest.approx(report.position.hold_time - 30)
    assert ctl.ctx.state.last_balance == pytest.approx(1234.56)


@pytest.mark.asyncio
async def test_new_amount_applies_to_next_open(weex_page, make_controller):
    ctl = make_controller(weex_page)
    assert ctl.set_amount(2000)
    ctl.ctx.state.running = True

    await ctl.scheduler.tick()

    assert weex_page.elements[SEL.amount_input][0].value == "2000"
    assert ctl.ctx.state.current_position.volume == 4000


def test_set_hold_time_fixed_and_range(weex_page, make_controller):
    ctl = make_controller(weex_page)

    assert ctl.set_hold_time(5)
    assert (ctl.config.hold_time_min, ctl.config.hold_time_max) == (300, 300)
    assert ctl.set_hold_time(2, 3.5)
    assert (ctl.config.hold_time_min, ctl.config.hold_time_max) == (120, 210)
    assert not ctl.set_hold_time(4, 2)
    assert (ctl.config.hold_time_min, ctl.config.hold_time_max) == (120, 210)


def test_set_order_type(weex_page, make_controller):
    ctl = make_controller(weex_page)

    assert ctl.set_order_type("short_only")
    assert ctl.config.order_type is OrderPolicy.SHORT_ONLY
    assert ctl.set_order_type("long_and_short")
    assert ctl.config.order_type is OrderPolicy.ALTERNATING
    assert not ctl.set_order_type("both")
    assert ctl.config.order_type is OrderPolicy.ALTERNATING


def test_set_amount_rejects_non_positive(weex_page, make_controller):
    ctl = make_controller(weex_page)

    assert not ctl.set_amount(0)
    assert ctl.config.position_amount == 15000


@pytest.mark.asyncio
async def test_close_button_detection(weex_page, make_controller):
    ctl = make_controller(weex_page)
    assert await ctl.test_close_button() is True

    weex_page.remove(SEL.close_button)
    weex_page.add(SEL.generic_buttons, "Close all", name="close_all")
    weex_page.add(SEL.generic_buttons, "Deposit", name="deposit")

    assert await ctl.test_close_button() is False
    assert await ctl.close_candidates() == ["Close all"]
    assert weex_page.activations == []


@pytest.mark.asyncio
async def test_independent_instances(make_controller):
    first = make_controller(build_weex_page(FakeSurface()))
    second = make_controller(build_weex_page(FakeSurface()))
    first.ctx.state.running = True

    await first.scheduler.tick()

    assert first.ctx.state.total_volume == 30000
    assert second.ctx.state.total_volume == 0
    assert second.ctx.state.current_position is None


@pytest.mark.asyncio
async def test_close_button_detection_logs_button_html_in_diagnostics(weex_page, make_controller, caplog, monkeypatch):
    monkeypatch.setattr(logs, "_diag", True)
    ctl = make_controller(weex_page)

    with caplog.at_level(logging.DEBUG, logger="weexbot"):
        assert await ctl.test_close_button() is True

    assert "Button HTML: <button>Flash close</button>" in caplog.text
