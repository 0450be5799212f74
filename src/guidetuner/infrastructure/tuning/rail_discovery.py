"""Channel resolution through a discovered sub-page and a lazy content rail.

HBO Max lists live channels in a rail on the HBO tab.  The tab URL is
read from the menu of the landing page the caller already loaded
(phase A) and cached; the rail only populates once scrolled into view
(phase B); each tile links to a ``/channel/watch/`` URL (phase C)
which is then opened (phase D).

A cached tab URL can go stale between sessions.  When the rail or its
tiles do not show up on a cached URL, the homepage is reloaded and the
URL rediscovered exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

import structlog
from playwright.async_api import Page

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)
from guidetuner.domain.tuning.exceptions import TuningError
from guidetuner.infrastructure.config.schema import TuningConfig

from .base import ChannelStrategyBase
from .caches import DiscoveredUrlCache
from .primitives import (
    evaluate_with_timeout,
    log_available_channels,
    navigate,
    normalize_channel_name,
    wait_for_visible,
)

log = structlog.get_logger(__name__)

_TAB_HREF_JS = """(selector) => {
    const link = document.querySelector(selector);
    return link ? link.getAttribute("href") : null;
}"""

_SCROLL_INTO_VIEW_JS = """(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.scrollIntoView({ block: "center" });
    return true;
}"""

_SCRAPE_RAIL_JS = """(args) => {
    const rail = document.querySelector(args.railSelector);
    if (!rail) return [];
    const out = [];
    for (const link of rail.querySelectorAll("a")) {
        const label = link.querySelector(args.textSelector);
        const href = link.getAttribute("href") || "";
        if (!label || !href.includes(args.watchMarker)) continue;
        out.push({ name: (label.textContent || "").trim(), href: href });
    }
    return out;
}"""


@dataclass(frozen=True)
class RailTile:
    name: str
    watch_url: str


class _RailMissingError(TuningError):
    """The rail did not render on the tab page."""

    def __init__(self, message: str, *, from_cache: bool) -> None:
        super().__init__(message)
        self.from_cache = from_cache


class RailDiscoveryStrategy(ChannelStrategyBase):
    """HBO tab discovery plus distribution-channel rail scrape."""

    name = StrategyName.HBO_GRID

    base_url = "https://play.hbomax.com"
    tab_selector = 'a[aria-label="H B O"]'
    rail_selector = 'section[data-testid="hbo-page-rail-distribution-channels-us_rail"]'
    tile_text_selector = 'p[aria-hidden="true"]'
    watch_path_marker = "/channel/watch/"

    _tab_timeout_ms: int = 5000
    _tile_timeout_ms: int = 5000

    def __init__(
        self,
        config: TuningConfig | None = None,
        cache: DiscoveredUrlCache | None = None,
    ) -> None:
        super().__init__(config)
        self._cache = cache if cache is not None else DiscoveredUrlCache()

    @property
    def cache(self) -> DiscoveredUrlCache:
        return self._cache

    # ------------------------------------------------------------------
    # Capability hooks
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()
        log.debug("rail_cache_cleared")

    async def resolve_direct_url(
        self, profile: SiteProfile, page: Page | None = None
    ) -> str | None:
        if not profile.channel:
            return None
        return self._cache.get_watch_url(normalize_channel_name(profile.channel))

    def invalidate_direct_url(self, profile: SiteProfile) -> None:
        if profile.channel:
            self._cache.drop_watch_url(normalize_channel_name(profile.channel))

    async def discover_channels(
        self, page: Page, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        cached = self._cache.watch_entries()
        if cached:
            return [
                DiscoveredChannel(name=name, channel_selector=name) for name, _ in cached
            ]
        tiles = await self._load_rail_with_recovery(page)
        return [DiscoveredChannel(name=t.name, channel_selector=t.name) for t in tiles]

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        channel = profile.channel or ""
        key = normalize_channel_name(channel)

        try:
            tiles = await self._load_rail_with_recovery(page)
        except TuningError as exc:
            return ResolutionResult.fail(str(exc))

        tile = next((t for t in tiles if normalize_channel_name(t.name) == key), None)
        if tile is None:
            log_available_channels(profile.label, channel, (t.name for t in tiles))
            return ResolutionResult.fail(
                f"Channel {channel} not found in HBO channel rail. Check the "
                "channel name against the HBO tab listing."
            )

        error = await navigate(
            page, tile.watch_url, timeout_ms=self._config.navigation_timeout_ms
        )
        if error is not None:
            self._cache.drop_watch_url(key)
            return ResolutionResult.fail(
                f"Failed to navigate to HBO channel {channel} at {tile.watch_url}: {error}"
            )
        log.info("rail_channel_opened", channel=channel, url=tile.watch_url)
        return ResolutionResult.ok()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _load_rail_with_recovery(self, page: Page) -> list[RailTile]:
        try:
            return await self._load_rail(page, use_cache=True)
        except _RailMissingError as exc:
            if not exc.from_cache:
                raise
            # Single rediscovery; a second miss propagates as terminal.
            self._cache.invalidate_page_url()
            log.info("rail_cached_url_stale", reason=str(exc))
            return await self._load_rail(page, use_cache=False, rediscovering=True)

    async def _load_rail(
        self, page: Page, *, use_cache: bool, rediscovering: bool = False
    ) -> list[RailTile]:
        tab_url = self._cache.page_url if use_cache else None
        from_cache = tab_url is not None
        if tab_url is None:
            tab_url = await self._discover_tab_url(page, navigate_home=rediscovering)

        error = await navigate(page, tab_url, timeout_ms=self._config.navigation_timeout_ms)
        if error is not None:
            raise _RailMissingError(
                f"Failed to navigate to HBO tab page {tab_url}: {error}",
                from_cache=from_cache,
            )

        if not await wait_for_visible(
            page, self.rail_selector, timeout_ms=self._config.video_timeout_ms
        ):
            raise _RailMissingError(
                f"HBO channel rail did not appear on {tab_url}.", from_cache=from_cache
            )

        # Tiles populate only after the rail enters the viewport.
        await evaluate_with_timeout(
            page,
            _SCROLL_INTO_VIEW_JS,
            self.rail_selector,
            timeout_ms=self._config.evaluate_timeout_ms,
            action="scrolling the HBO channel rail into view",
        )
        if not await wait_for_visible(
            page, f"{self.rail_selector} a", timeout_ms=self._tile_timeout_ms
        ):
            raise _RailMissingError(
                f"HBO channel rail tiles did not load on {tab_url}.",
                from_cache=from_cache,
            )

        tiles = await self._scrape_rail(page)
        for tile in tiles:
            self._cache.put_watch_url(
                normalize_channel_name(tile.name), tile.watch_url, display_name=tile.name
            )
        log.debug("rail_scraped", url=tab_url, tiles=len(tiles), from_cache=from_cache)
        return tiles

    async def _discover_tab_url(self, page: Page, *, navigate_home: bool) -> str:
        """Read the tab link from the menu bar.

        The first discovery reads the homepage the caller already loaded;
        a rediscovery has left it and must navigate back first.
        """
        if navigate_home:
            error = await navigate(
                page, self.base_url, timeout_ms=self._config.navigation_timeout_ms
            )
            if error is not None:
                raise TuningError(
                    f"Failed to navigate back to HBO Max homepage: {error}"
                )

        href = None
        if await wait_for_visible(page, self.tab_selector, timeout_ms=self._tab_timeout_ms):
            href = await evaluate_with_timeout(
                page,
                _TAB_HREF_JS,
                self.tab_selector,
                timeout_ms=self._config.evaluate_timeout_ms,
                action="reading the HBO tab link",
            )
        if not href:
            raise TuningError(
                "HBO tab not found in homepage menu bar. HBO Max subscription "
                "may not be active."
            )

        tab_url = urljoin(self.base_url, href)
        self._cache.set_page_url(tab_url)
        log.info("rail_tab_discovered", url=tab_url)
        return tab_url

    async def _scrape_rail(self, page: Page) -> list[RailTile]:
        raw = await evaluate_with_timeout(
            page,
            _SCRAPE_RAIL_JS,
            {
                "railSelector": self.rail_selector,
                "textSelector": self.tile_text_selector,
                "watchMarker": self.watch_path_marker,
            },
            timeout_ms=self._config.evaluate_timeout_ms,
            action="reading the HBO channel rail",
        )
        tiles: list[RailTile] = []
        for item in raw or []:
            name = str(item.get("name") or "").strip()
            href = str(item.get("href") or "")
            if not name or self.watch_path_marker not in href:
                continue
            tiles.append(RailTile(name=name, watch_url=urljoin(self.base_url, href)))
        return tiles
