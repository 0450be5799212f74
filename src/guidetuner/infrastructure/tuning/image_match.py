"""Channel resolution by image URL fragment.

The channel identifier is a fragment of the channel logo URL.  Both
strategies scan the page once, click what belongs to the logo, and keep
no state between tunes.
"""

from __future__ import annotations

import structlog
from playwright.async_api import Page

from guidetuner.domain.entities.tuning import (
    ClickTarget,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)

from .base import ChannelStrategyBase
from .primitives import (
    evaluate_with_timeout,
    locate_center,
    scroll_and_click,
    wait_for_hidden,
    wait_for_visible,
)

log = structlog.get_logger(__name__)

# Placeholder replaced by the channel identifier in ``match_selector``.
CHANNEL_PLACEHOLDER = "{channel}"

_TILE_TARGET_JS = """(selector) => {
    const center = (el) => {
        el.scrollIntoView({ behavior: "instant", block: "center", inline: "center" });
        const rect = el.getBoundingClientRect();
        if (!rect.width || !rect.height) return null;
        return { x: rect.x + rect.width / 2, y: rect.y + rect.height / 2 };
    };
    for (const el of document.querySelectorAll(selector)) {
        const own = el.getBoundingClientRect();
        if (!own.width || !own.height) continue;
        let pointerFallback = null;
        for (let node = el.parentElement; node && node !== document.body; node = node.parentElement) {
            const tag = node.tagName;
            if (tag === "A" || tag === "BUTTON" || node.getAttribute("role") === "button" || node.hasAttribute("onclick")) {
                const point = center(node);
                if (point) return point;
            }
            if (!pointerFallback) {
                const rect = node.getBoundingClientRect();
                if (rect.width > 20 && rect.height > 20 && window.getComputedStyle(node).cursor === "pointer") {
                    pointerFallback = node;
                }
            }
        }
        if (pointerFallback) {
            const point = center(pointerFallback);
            if (point) return point;
        }
    }
    return null;
}"""

_ROW_TARGET_JS = """(slug) => {
    const center = (el) => {
        el.scrollIntoView({ behavior: "instant", block: "center", inline: "center" });
        const rect = el.getBoundingClientRect();
        return { x: rect.x + rect.width / 2, y: rect.y + rect.height / 2 };
    };
    for (const img of document.querySelectorAll("img")) {
        if (!img.src || !img.src.includes(slug)) continue;
        const imgRect = img.getBoundingClientRect();
        if (!imgRect.width || !imgRect.height) continue;
        const imgCenterY = imgRect.y + imgRect.height / 2;
        const besideImage = (rect) =>
            rect.x > imgRect.x + imgRect.width - 10 &&
            Math.abs(rect.y + rect.height / 2 - imgCenterY) < imgRect.height;
        for (let row = img.parentElement; row && row !== document.body; row = row.parentElement) {
            if (row.getBoundingClientRect().width <= imgRect.width * 2) continue;
            const clickables = row.querySelectorAll(
                'a, button, [role="button"], [onclick], [class*="card"], [class*="program"], [class*="show"], [class*="episode"]'
            );
            for (const el of clickables) {
                const rect = el.getBoundingClientRect();
                if (rect.width > 0 && rect.height > 0 && besideImage(rect)) return center(el);
            }
            for (const div of row.querySelectorAll("div")) {
                const rect = div.getBoundingClientRect();
                if (rect.width > 20 && rect.height > 20 && besideImage(rect) &&
                    window.getComputedStyle(div).cursor === "pointer") return center(div);
            }
        }
        img.scrollIntoView({ behavior: "instant", block: "center", inline: "center" });
        const rect = img.getBoundingClientRect();
        return { x: rect.x + rect.width + 50, y: rect.y + rect.height / 2 };
    }
    return null;
}"""

_VIDEO_SWITCHING_JS = """() => {
    const video = document.querySelector("video");
    return !video || video.readyState < 3;
}"""


def resolve_match_selector(profile: SiteProfile) -> str:
    """Selector for the channel element, defaulting to an image src match."""
    channel = profile.channel or ""
    if profile.match_selector:
        return profile.match_selector.replace(CHANNEL_PLACEHOLDER, channel)
    return f'img[src*="{channel}"]'


class TileClickStrategy(ChannelStrategyBase):
    """Click the interactive container around the channel logo."""

    name = StrategyName.TILE_CLICK
    waits_for_image = True

    # Each play click is verified by the control going away.
    _play_verify_timeout_ms: int = 3000

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        cfg = self._config
        selector = resolve_match_selector(profile)

        point = await evaluate_with_timeout(
            page,
            _TILE_TARGET_JS,
            selector,
            timeout_ms=cfg.evaluate_timeout_ms,
            action="locating the channel tile",
        )
        if not point:
            return ResolutionResult.fail(
                f"Channel element not found for selector {selector}."
            )
        await scroll_and_click(
            page, ClickTarget(x=point["x"], y=point["y"]), settle_ms=cfg.settle_delay_ms
        )

        if not profile.play_selector:
            return ResolutionResult.ok()
        return await self._click_play(page, profile.play_selector)

    async def _click_play(self, page: Page, selector: str) -> ResolutionResult:
        cfg = self._config
        if not await wait_for_visible(page, selector, timeout_ms=cfg.video_timeout_ms):
            return ResolutionResult.fail(
                f"Play button {selector} did not appear after clicking channel tile."
            )

        for attempt in range(cfg.click_attempts):
            target = await locate_center(page, selector, timeout_ms=cfg.evaluate_timeout_ms)
            if target is None:
                if attempt > 0:
                    # Gone after an earlier click: that click worked.
                    log.debug("tile_play_button_gone", attempt=attempt + 1)
                    return ResolutionResult.ok()
                return ResolutionResult.fail(
                    f"Play button {selector} found but has no dimensions."
                )
            await scroll_and_click(page, target, settle_ms=cfg.settle_delay_ms)
            if await wait_for_hidden(
                page, selector, timeout_ms=self._play_verify_timeout_ms
            ):
                return ResolutionResult.ok()
            log.info(
                "tile_play_click_retry",
                attempt=attempt + 1,
                attempts=cfg.click_attempts,
            )

        return ResolutionResult.fail(
            f"Play button click did not dismiss the modal after "
            f"{cfg.click_attempts} attempts."
        )


class ThumbnailRowStrategy(ChannelStrategyBase):
    """Click the program cell beside the channel thumbnail in a guide row."""

    name = StrategyName.THUMBNAIL_ROW
    waits_for_image = True

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        cfg = self._config
        point = await evaluate_with_timeout(
            page,
            _ROW_TARGET_JS,
            profile.channel or "",
            timeout_ms=cfg.evaluate_timeout_ms,
            action="locating the channel thumbnail row",
        )
        if not point:
            return ResolutionResult.fail(
                f"Channel thumbnail {profile.channel} not found in page images."
            )

        await scroll_and_click(
            page, ClickTarget(x=point["x"], y=point["y"]), settle_ms=cfg.settle_delay_ms
        )

        # Best-effort: the player drops readyState while switching streams.
        try:
            await page.wait_for_function(
                _VIDEO_SWITCHING_JS, timeout=cfg.channel_switch_delay_ms
            )
        except Exception:  # noqa: BLE001
            log.debug("thumbnail_row_switch_not_observed", channel=profile.channel)
        return ResolutionResult.ok()
