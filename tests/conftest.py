"""Shared test fixtures for the guidetuner test suite."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)
from guidetuner.infrastructure.config.schema import TuningConfig
from guidetuner.infrastructure.tuning import guide_grid, primitives, rail_discovery
from guidetuner.infrastructure.tuning.base import ChannelStrategyBase
from guidetuner.infrastructure.tuning.primitives import normalize_channel_name

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@pytest.fixture()
def tuning_config() -> TuningConfig:
    """Tuning config with every settle delay disabled."""
    return TuningConfig(
        settle_delay_ms=0,
        reveal_settle_ms=0,
        click_retry_delay_ms=0,
    )


# ---------------------------------------------------------------------------
# Virtualized guide page
# ---------------------------------------------------------------------------


class FakeGuidePage:
    """Playwright page double for a scroll-virtualized live guide.

    Only ``before + 1 + after`` rows around the row at the top of the
    viewport are rendered (13 by default).  Scripts are dispatched by
    identity with the strategy module's JS constants.
    """

    row_height = 40.0
    grid_top = 120.0

    def __init__(
        self,
        names: list[str],
        *,
        before: int = 2,
        after: int = 10,
        with_row_numbers: bool = True,
    ) -> None:
        self.names = list(names)
        self.before = before
        self.after = after
        self.with_row_numbers = with_row_numbers
        self.scroll_top = 0.0
        self.closed = False

        self.reads = 0
        self.scrolled_rows: list[int] = []
        self.located: list[str] = []

        self.mouse = MagicMock()
        self.mouse.click = AsyncMock()
        self.wait_for_selector = AsyncMock(return_value=None)
        self.wait_for_function = AsyncMock(return_value=True)
        self.eval_on_selector = AsyncMock(return_value=None)
        self.goto = AsyncMock(return_value=None)

    def is_closed(self) -> bool:
        return self.closed

    def reset_counters(self) -> None:
        self.reads = 0
        self.scrolled_rows.clear()
        self.located.clear()
        self.mouse.click.reset_mock()

    @property
    def top_row(self) -> int:
        return max(0, round((self.scroll_top - self.grid_top) / self.row_height))

    def rendered_rows(self) -> range:
        top = self.top_row
        return range(max(0, top - self.before), min(len(self.names), top + self.after + 1))

    def row_of(self, display: str) -> int:
        return self.names.index(display)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == guide_grid._READ_METRICS_JS:
            return {
                "rowHeight": self.row_height,
                "spacerHeight": self.row_height * len(self.names),
                "gridDocTop": self.grid_top,
            }
        if script == guide_grid._SCROLL_TO_JS:
            self.scroll_top = float(arg)
            self.scrolled_rows.append(self.top_row)
            return arg
        if script == guide_grid._READ_RENDERED_JS:
            self.reads += 1
            return [
                {
                    "display": self.names[row],
                    "dom": dom,
                    "row": row if self.with_row_numbers else None,
                }
                for dom, row in enumerate(self.rendered_rows())
            ]
        if script == guide_grid._LOCATE_ON_NOW_JS:
            for row in self.rendered_rows():
                if normalize_channel_name(self.names[row]) == arg["name"]:
                    self.located.append(self.names[row])
                    return {"x": 400.0, "y": 20.0 + row}
            return None
        if script == guide_grid._ELEMENTS_AT_POINT_JS:
            return ["div.overlay"]
        if script == primitives._DOUBLE_FRAME_JS:
            return True
        if script == primitives._CENTER_OF_SELECTOR_JS:
            return {"x": 640.0, "y": 360.0}
        raise AssertionError(f"unexpected script: {script[:60]!r}")


@pytest.fixture()
def make_guide_page() -> type[FakeGuidePage]:
    return FakeGuidePage


# ---------------------------------------------------------------------------
# Rail page
# ---------------------------------------------------------------------------


class FakeRailPage:
    """Playwright page double for the HBO landing page and channel rail.

    ``rail_urls`` lists the tab URLs on which the rail renders with tiles;
    ``skeleton_urls`` those where only the empty section shell renders.
    The page starts on the homepage, as the caller loads it before tuning.
    """

    base_url = rail_discovery.RailDiscoveryStrategy.base_url

    def __init__(
        self,
        *,
        tab_href: str | None = "/channel/hbo-tab",
        rail_urls: set[str] | None = None,
        skeleton_urls: set[str] | None = None,
        tiles: list[dict[str, str]] | None = None,
        goto_errors: dict[str, str] | None = None,
    ) -> None:
        self.tab_href = tab_href
        self.rail_urls = rail_urls if rail_urls is not None else {
            f"{self.base_url}/channel/hbo-tab"
        }
        self.tiles = tiles if tiles is not None else [
            {"name": "HBO", "href": "/channel/watch/hbo-east"},
            {"name": "HBO Comedy", "href": "/channel/watch/hbo-comedy"},
            {"name": "Promo", "href": "/series/not-a-channel"},
        ]
        self.skeleton_urls = skeleton_urls or set()
        self.goto_errors = goto_errors or {}
        self.url = self.base_url
        self.gotos: list[str] = []
        self.mouse = MagicMock()
        self.mouse.click = AsyncMock()

    def is_closed(self) -> bool:
        return False

    async def goto(self, url: str, **_: Any) -> None:
        self.gotos.append(url)
        if url in self.goto_errors:
            raise PlaywrightError(self.goto_errors[url])
        self.url = url
        return None

    async def wait_for_selector(
        self, selector: str, state: str = "visible", timeout: float | None = None
    ) -> None:
        strategy = rail_discovery.RailDiscoveryStrategy
        if selector == strategy.tab_selector:
            if self.url == self.base_url and self.tab_href:
                return None
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {selector}")
        if selector == strategy.rail_selector:
            if self.url in self.rail_urls or self.url in self.skeleton_urls:
                return None
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {selector}")
        if selector.startswith(strategy.rail_selector):
            if self.url in self.rail_urls:
                return None
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms waiting for {selector}")
        return None

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == rail_discovery._TAB_HREF_JS:
            return self.tab_href
        if script == rail_discovery._SCROLL_INTO_VIEW_JS:
            return True
        if script == rail_discovery._SCRAPE_RAIL_JS:
            return list(self.tiles) if self.url in self.rail_urls else []
        raise AssertionError(f"unexpected script: {script[:60]!r}")


@pytest.fixture()
def make_rail_page() -> type[FakeRailPage]:
    return FakeRailPage


# ---------------------------------------------------------------------------
# Generic page + strategy doubles
# ---------------------------------------------------------------------------


def _make_mock_page() -> AsyncMock:
    """AsyncMock page with synchronous ``is_closed()``."""
    page = AsyncMock()
    page.is_closed = MagicMock(return_value=False)
    page.mouse = MagicMock()
    page.mouse.click = AsyncMock()
    return page


@pytest.fixture()
def mock_page() -> AsyncMock:
    return _make_mock_page()


class FakeStrategy(ChannelStrategyBase):
    """Strategy double recording calls and returning a canned result."""

    def __init__(
        self,
        name: StrategyName = StrategyName.TILE_CLICK,
        *,
        result: ResolutionResult | None = None,
        error: Exception | None = None,
        waits_for_image: bool = False,
    ) -> None:
        super().__init__(TuningConfig())
        self.name = name
        self.waits_for_image = waits_for_image
        self.result = result or ResolutionResult.ok()
        self.error = error
        self.executed: list[SiteProfile] = []
        self.cleared = 0
        self.direct_urls: dict[str, str] = {}
        self.discovered = [DiscoveredChannel(name="CNN", channel_selector="CNN")]

    async def execute(self, page: Any, profile: SiteProfile) -> ResolutionResult:
        self.executed.append(profile)
        if self.error is not None:
            raise self.error
        return self.result

    def clear_cache(self) -> None:
        self.cleared += 1

    async def resolve_direct_url(
        self, profile: SiteProfile, page: Any | None = None
    ) -> str | None:
        return self.direct_urls.get(profile.channel or "")

    def invalidate_direct_url(self, profile: SiteProfile) -> None:
        self.direct_urls.pop(profile.channel or "", None)

    async def discover_channels(
        self, page: Any, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        return list(self.discovered)


@pytest.fixture()
def make_strategy() -> type[FakeStrategy]:
    return FakeStrategy
