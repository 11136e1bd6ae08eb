import asyncio

import pytest

from weexbot.locator import ResourceLocator


@pytest.mark.asyncio
async def test_first_match_returned_on_first_poll(surface):
    first = surface.add(".btn", "one")
    surface.add(".btn", "two")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.5)

    found = await locator.locate(".btn")

    assert found is first
    assert surface.queries[".btn"] == 1


@pytest.mark.asyncio
async def test_text_filter_matches_substring_of_stripped_text(surface):
    surface.add(".btns", "Close all")
    wanted = surface.add(".btns", "  Flash close  ")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.5)

    assert await locator.locate(".btns", "Flash close") is wanted


@pytest.mark.asyncio
async def test_waits_for_element_rendered_late(surface):
    late = surface.add("#amount", delay=0.05)
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=1.0)

    found = await locator.locate("#amount")

    assert found is late
    assert surface.queries["#amount"] > 1


@pytest.mark.asyncio
async def test_not_found_resolves_between_timeout_and_one_extra_poll(surface):
    timeout, poll = 0.2, 0.05
    locator = ResourceLocator(surface, poll_interval=poll, timeout=timeout)
    loop = asyncio.get_running_loop()

    started = loop.time()
    found = await locator.locate("#missing")
    elapsed = loop.time() - started

    assert found is None
    assert elapsed >= timeout
    # small allowance for event loop scheduling jitter
    assert elapsed <= timeout + poll + 0.05


@pytest.mark.asyncio
async def test_surface_error_resolves_none(surface):
    surface.broken["#boom"] = RuntimeError("page crashed")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.5)

    assert await locator.locate("#boom") is None
    assert surface.queries["#boom"] == 1


@pytest.mark.asyncio
async def test_concurrent_searches_do_not_share_state(surface):
    surface.add("#fast", "a")
    slow = surface.add("#slow", "b", delay=0.05)
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.1)

    fast_res, slow_res, missing = await asyncio.gather(
        locator.locate("#fast"), locator.locate("#slow"), locator.locate("#none")
    )

    assert fast_res is not None
    assert slow_res is slow
    assert missing is None


@pytest.mark.asyncio
async def test_fallback_strategies_tried_in_order(surface):
    hit = surface.add(".btn32", "Flash close")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.02)
    strategies = [(".primary", "Flash close"), (".btns", "Flash close"), (".btn32", "Flash close")]

    found = await locator.locate_first(strategies, scan_selector="button", exact_text="Flash close")

    assert found is hit
    order = [s for s in dict.fromkeys(surface.query_log)]
    assert order == [".primary", ".btns", ".btn32"]
    assert surface.queries["button"] == 0


@pytest.mark.asyncio
async def test_brute_force_scan_needs_exact_text(surface):
    surface.add("button", "Flash close all")
    exact = surface.add("button", " Flash close ")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.02)

    found = await locator.locate_first([(".primary", "Flash close")], scan_selector="button", exact_text="Flash close")

    assert found is exact
    assert surface.queries["button"] == 1


@pytest.mark.asyncio
async def test_all_strategies_exhausted(surface):
    surface.add("button", "Cancel")
    locator = ResourceLocator(surface, poll_interval=0.01, timeout=0.02)

    found = await locator.locate_first([(".a", "x"), (".b", "x")], scan_selector="button", exact_text="x")

    assert found is None
