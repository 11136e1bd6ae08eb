import argparse
import asyncio
import dataclasses
import sys
import webbrowser
from typing import List, Optional

from playwright.async_api import async_playwright

from weexbot import settings
from weexbot.browser import connect_to_edge_existing_tab, ensure_edge_cdp_ready, save_dom_snapshot
from weexbot.controller import BotController
from weexbot.logs import log, log_error, log_success, set_diagnostics, setup_logging
from weexbot.models import BotConfig
from weexbot.surface import PlaywrightSurface


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Weex volume bot: opens, holds and closes positions on the trade page.")
    parser.add_argument("--action", choices=["run", "status", "balance", "testclose"], default="run")
    parser.add_argument("--amount", type=float, help="Position amount (notional) in USDT")
    parser.add_argument("--leverage", type=float, help="Leverage configured on the page")
    parser.add_argument("--hold-min", type=float, help="Minimum hold time in minutes")
    parser.add_argument("--hold-max", type=float, help="Maximum hold time in minutes")
    parser.add_argument("--order-type", type=str, help="long_only | short_only | alternating")
    parser.add_argument("--target", type=float, help="Cumulative volume target in USD")
    parser.add_argument("--diag", action="store_true", help="Verbose diagnostic logging")
    return parser


def apply_overrides(config: BotConfig, args: argparse.Namespace) -> BotConfig:
    changes = {}
    if args.amount is not None:
        changes["position_amount"] = args.amount
    if args.leverage is not None:
        changes["leverage"] = args.leverage
    if args.target is not None:
        changes["volume_target"] = args.target
    if args.hold_min is not None:
        changes["hold_time_min"] = args.hold_min * 60
        changes["hold_time_max"] = (args.hold_max if args.hold_max is not None else args.hold_min) * 60
    elif args.hold_max is not None:
        changes["hold_time_max"] = max(args.hold_max * 60, config.hold_time_min)
    if args.order_type:
        policy = settings.parse_order_policy(args.order_type)
        if policy is None:
            raise SystemExit(f"Invalid --order-type {args.order_type!r}. Valid: long_only, short_only, alternating")
        changes["order_type"] = policy
    return dataclasses.replace(config, **changes) if changes else config


async def run_action(controller: BotController, action: str) -> int:
    if action == "balance":
        balance = await controller.get_balance()
        return 0 if balance is not None else 1
    if action == "status":
        controller.status()
        await controller.get_balance()
        return 0
    if action == "testclose":
        found = await controller.test_close_button()
        if not found and isinstance(controller.surface, PlaywrightSurface):
            await save_dom_snapshot(controller.surface.page, label="close_button_not_found")
        return 0 if found else 1

    if not await controller.start():
        return 1
    try:
        await controller.wait_stopped()
    except asyncio.CancelledError:
        log("🛑 Interrupted by user.")
        await controller.stop()
        await controller.scheduler.join()
        raise
    await controller.scheduler.join()
    return 0


async def main_async(args: argparse.Namespace) -> int:
    config = apply_overrides(settings.load_config(), args)

    ok = await asyncio.to_thread(
        ensure_edge_cdp_ready, settings.WEEX_TRADE_URL, settings.CDP_PORT, settings.env_flag("EDGE_ALLOW_KILL")
    )
    if not ok:
        log_error(f"CDP still not available on 127.0.0.1:{settings.CDP_PORT}.")
        return 1

    log(f"🔗 Opening URL in default browser (Edge): {settings.WEEX_TRADE_URL}")
    try:
        webbrowser.open(settings.WEEX_TRADE_URL)
    except Exception as e:
        log(f"⚠️ Could not open browser tab: {e}")
    await asyncio.sleep(3)

    async with async_playwright() as playwright:
        try:
            page = await connect_to_edge_existing_tab(playwright, settings.WEEX_TRADE_URL, settings.CDP_PORT)
        except Exception as e:
            log_error(f"Attach error: {e}")
            log(f"Close Edge and start it like this: msedge --remote-debugging-port={settings.CDP_PORT}")
            return 1
        log_success("Attached to the existing Edge trading tab")
        controller = BotController(PlaywrightSurface(page), config)
        return await run_action(controller, args.action)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    log_file = setup_logging()
    if args.diag:
        set_diagnostics(True)
    log("🚀 Weex Volume Bot v3.0")
    log(f"🎯 Target: {settings.WEEX_TRADE_URL}")
    log(f"🧾 Log file: {log_file}")
    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:
        log("🛑 Interrupted by user.")
        return 130
    except Exception as e:
        log_error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
