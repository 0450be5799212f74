"""Channel resolution by station code (Fox.com live guide)."""

from __future__ import annotations

import structlog
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guidetuner.domain.entities.tuning import ResolutionResult, SiteProfile, StrategyName

from .base import ChannelStrategyBase
from .primitives import ensure_open, evaluate_with_timeout

log = structlog.get_logger(__name__)

_STATION_PRESENT_JS = """(args) => Array.from(document.querySelectorAll(args.container)).some((c) => {
    const button = c.querySelector(args.button);
    return ((button && button.getAttribute("title")) || "").toLowerCase() === args.code;
})"""

_CLICK_STATION_JS = """(args) => {
    for (const c of document.querySelectorAll(args.container)) {
        const button = c.querySelector(args.button);
        if (!button) continue;
        if ((button.getAttribute("title") || "").toLowerCase() !== args.code) continue;
        button.click();
        return true;
    }
    return false;
}"""


class StationGridStrategy(ChannelStrategyBase):
    name = StrategyName.FOX_GRID

    container_selector = '[data-testid="GuideChannelContainer"]'
    logo_button_selector = '[data-testid="GuideChannelLogo"] button'

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        code = (profile.channel or "").strip()
        args = {
            "container": self.container_selector,
            "button": self.logo_button_selector,
            "code": code.lower(),
        }
        missing = ResolutionResult.fail(
            f"Station code {code} not found in Fox.com guide grid."
        )

        ensure_open(page, "waiting for the Fox.com guide")
        try:
            await page.wait_for_function(
                _STATION_PRESENT_JS, arg=args, timeout=self._config.video_timeout_ms
            )
        except PlaywrightTimeoutError:
            return missing

        clicked = await evaluate_with_timeout(
            page,
            _CLICK_STATION_JS,
            args,
            timeout_ms=self._config.evaluate_timeout_ms,
            action="clicking the station logo",
        )
        if not clicked:
            return missing
        log.debug("station_grid_clicked", code=code)
        return ResolutionResult.ok()
