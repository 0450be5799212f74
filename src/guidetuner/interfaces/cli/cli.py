from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Iterable
from dataclasses import asdict
from pathlib import Path
from typing import Any

import structlog
from playwright.async_api import async_playwright

from guidetuner.domain.entities.tuning import SiteProfile, StrategyName
from guidetuner.infrastructure.composition import build_resolver
from guidetuner.infrastructure.config import AppConfig, load_config
from guidetuner.infrastructure.logging.setup import configure_logging

log = structlog.get_logger(__name__)


def _parse_args(argv: Iterable[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="guidetuner")

    # Config wiring flags (no business logic)
    parser.add_argument("--config", default=None, help="Path to YAML config file.")
    parser.add_argument("--dotenv", default=None, help="Path to .env file.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level.",
    )
    parser.add_argument(
        "--log-format",
        default=None,
        choices=["json", "console"],
        help="Override log format.",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window instead of running headless.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    strategies = [s.value for s in StrategyName if s is not StrategyName.NONE]

    tune = sub.add_parser("tune", help="Open a guide page and select a channel.")
    tune.add_argument("--url", required=True, help="Guide page URL.")
    tune.add_argument("--strategy", required=True, choices=strategies)
    tune.add_argument("--channel", required=True, help="Channel identifier.")
    tune.add_argument("--list-selector", default=None, help="Reveal-guide selector.")
    tune.add_argument("--play-selector", default=None, help="Play button selector.")
    tune.add_argument(
        "--match-selector",
        default=None,
        help="Channel element selector; '{channel}' is replaced by the identifier.",
    )

    discover = sub.add_parser("discover", help="List the channels a guide offers.")
    discover.add_argument("--url", required=True, help="Guide page URL.")
    discover.add_argument("--strategy", required=True, choices=strategies)
    discover.add_argument("--list-selector", default=None, help="Reveal-guide selector.")

    return parser.parse_args(argv)


def _profile_from_args(args: argparse.Namespace) -> SiteProfile:
    return SiteProfile(
        strategy=args.strategy,
        channel=getattr(args, "channel", None),
        list_selector=args.list_selector,
        play_selector=getattr(args, "play_selector", None),
        match_selector=getattr(args, "match_selector", None),
        name=args.strategy,
    )


async def _run(config: AppConfig, args: argparse.Namespace) -> dict[str, Any]:
    resolver = build_resolver(config)
    profile = _profile_from_args(args)

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=config.playwright_headless)
        try:
            page = await browser.new_page()
            page.set_default_timeout(config.playwright_timeout_ms)
            await page.goto(
                args.url,
                wait_until="load",
                timeout=config.tuning.navigation_timeout_ms,
            )
            log.info("guide_page_loaded", url=args.url)

            if args.command == "discover":
                channels = await resolver.discover_channels(page, profile)
                return {
                    "success": bool(channels),
                    "channels": [asdict(c) for c in channels],
                }

            result = await resolver.resolve(page, profile)
            return {"success": result.success, "reason": result.reason}
        finally:
            await browser.close()


def start(argv: Iterable[str] | None = None) -> int:
    """
    Process entrypoint.

    Loads config exactly once, configures logging, then runs one command
    against a fresh Chromium page and prints the outcome as JSON.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = _parse_args(argv)

    config_path = Path(args.config) if args.config else None
    dotenv_path = Path(args.dotenv) if args.dotenv else None

    cli_overrides: dict[str, Any] = {}
    if args.log_level:
        cli_overrides["log_level"] = args.log_level
    if args.log_format:
        cli_overrides["log_format"] = args.log_format
    if args.headed:
        cli_overrides["playwright_headless"] = False

    config = load_config(
        config_path=config_path,
        dotenv_path=dotenv_path,
        cli_overrides=cli_overrides,
    )

    configure_logging(config)

    outcome = asyncio.run(_run(config, args))
    print(json.dumps(outcome, indent=2))
    return 0 if outcome["success"] else 1


if __name__ == "__main__":
    raise SystemExit(start())
