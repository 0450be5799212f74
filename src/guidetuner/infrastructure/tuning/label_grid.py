"""Channel resolution by accessible label on a non-virtualized guide.

YouTube TV renders every guide row at once, so one evaluate scrapes all
``watch <Name>`` labels with their watch paths.  The target is matched
in tiers and opened by direct navigation.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog
from playwright.async_api import Page

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)

from .base import ChannelStrategyBase
from .primitives import (
    evaluate_with_timeout,
    log_available_channels,
    navigate,
    normalize_channel_name,
    wait_for_visible,
)

log = structlog.get_logger(__name__)

WATCH_BASE_URL = "https://tv.youtube.com"

# Affiliates that carry a different name in some markets.  Each alternate
# goes through the same tiers after the primary name misses.
CHANNEL_ALTERNATES: dict[str, tuple[str, ...]] = {
    "cw": ("WGN",),
    "pbs": (
        "Cascade PBS", "GBH", "KAET", "KBTC", "KCET", "KCTS", "KERA", "KLCS",
        "KOCE", "KPBS", "KQED", "KRMA", "KUHT", "KVIE", "Lakeshore PBS", "MPT",
        "NJ PBS", "THIRTEEN", "TPT", "WETA", "WGBH", "WHYY", "WLIW", "WNED",
        "WNET", "WNIT", "WPBA", "WPBT", "WTTW", "WTVS", "WXEL",
    ),
}

_SCRAPE_LABELS_JS = """(args) => {
    const out = [];
    for (const thumb of document.querySelectorAll(args.thumbSelector)) {
        const label = thumb.getAttribute("aria-label") || "";
        if (!label.toLowerCase().startsWith(args.labelPrefix)) continue;
        const anchor = thumb.querySelector("a");
        const href = (anchor ? anchor.getAttribute("href") : thumb.getAttribute("href")) || "";
        out.push({ name: label.slice(args.labelPrefix.length), href: href });
    }
    return out;
}"""


def match_label(labels: Mapping[str, str], channel: str) -> str | None:
    """Pick the watch path for *channel* from ``normalized label -> path``.

    Tiers, per candidate name (primary first, then alternates):

    1. exact label
    2. ``"<name> <digit>..."`` for "{Network} {Number}" affiliates
       (``nbc`` finds ``nbc 5`` but not ``nbc sports chicago``)
    3. ``"<name> (..."`` for regional variants
    """
    primary = normalize_channel_name(channel)
    candidates = [primary] + [
        normalize_channel_name(a) for a in CHANNEL_ALTERNATES.get(primary, ())
    ]

    for name in candidates:
        if name in labels:
            return labels[name]

        prefix = name + " "
        for label, path in labels.items():
            if label.startswith(prefix) and label[len(prefix):len(prefix) + 1].isdigit():
                return path

        for label, path in labels.items():
            if label.startswith(name + " ("):
                return path
    return None


class LabelGridStrategy(ChannelStrategyBase):
    """YouTube TV live guide."""

    name = StrategyName.YOUTUBE_GRID

    row_selector = "ytu-epg-row"
    thumb_selector = "ytu-endpoint.tenx-thumb[aria-label]"
    label_prefix = "watch "
    watch_path_prefix = "watch/"

    async def _scrape(self, page: Page) -> dict[str, tuple[str, str]]:
        """Return ``normalized name -> (display name, watch path)``."""
        raw = await evaluate_with_timeout(
            page,
            _SCRAPE_LABELS_JS,
            {"thumbSelector": self.thumb_selector, "labelPrefix": self.label_prefix},
            timeout_ms=self._config.evaluate_timeout_ms,
            action="reading the YouTube TV guide",
        )
        found: dict[str, tuple[str, str]] = {}
        for item in raw or []:
            display = str(item.get("name") or "").strip()
            href = str(item.get("href") or "")
            # "live" and "browse/" links are add-ons and info pages.
            if not display or not href.startswith(self.watch_path_prefix):
                continue
            found.setdefault(normalize_channel_name(display), (display, href))
        return found

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        channel = profile.channel or ""

        if not await wait_for_visible(
            page, self.row_selector, timeout_ms=self._config.video_timeout_ms
        ):
            return ResolutionResult.fail("YouTube TV guide grid did not load.")

        scraped = await self._scrape(page)
        path = match_label({k: v[1] for k, v in scraped.items()}, channel)
        if path is None:
            log_available_channels(profile.label, channel, (v[0] for v in scraped.values()))
            return ResolutionResult.fail(
                f'Channel "{channel}" not found in YouTube TV guide. Use the '
                "name shown in the guide (local stations may use call letters)."
            )

        watch_url = f"{WATCH_BASE_URL}/{path}"
        log.debug("label_grid_navigating", channel=channel, url=watch_url)
        error = await navigate(
            page, watch_url, timeout_ms=self._config.navigation_timeout_ms
        )
        if error is not None:
            return ResolutionResult.fail(
                f"Failed to navigate to YouTube TV watch page: {error}."
            )
        return ResolutionResult.ok()

    async def discover_channels(
        self, page: Page, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        if not await wait_for_visible(
            page, self.row_selector, timeout_ms=self._config.video_timeout_ms
        ):
            return []
        scraped = await self._scrape(page)
        return [
            DiscoveredChannel(name=display, channel_selector=display)
            for display, _ in sorted(scraped.values())
        ]
