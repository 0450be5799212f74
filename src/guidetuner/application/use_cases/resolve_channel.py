"""Channel resolution use case.

Single entry point for tuning a page to a channel.  Looks up the
profile's strategy, optionally waits for the channel logo to load,
dispatches, and logs failures.  Every path returns a
``ResolutionResult``; nothing a strategy raises escapes.
"""

from __future__ import annotations

from typing import Any

import structlog

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)
from guidetuner.domain.ports.channel_strategy import ChannelStrategyPort
from guidetuner.domain.ports.strategy_registry import StrategyRegistryPort
from guidetuner.domain.tuning.exceptions import TuningError

log = structlog.get_logger(__name__)

_IMAGE_READY_JS = """(fragment) => Array.from(document.querySelectorAll("img")).some((img) => {
    if (!img.src || !img.src.includes(fragment)) return false;
    if (!img.complete || img.naturalWidth === 0) return false;
    const rect = img.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0;
})"""


class ChannelResolver:
    """Dispatches channel resolution to the registered strategies."""

    def __init__(
        self,
        registry: StrategyRegistryPort,
        *,
        image_poll_timeout_ms: int = 3000,
    ) -> None:
        self._registry = registry
        self._image_poll_timeout_ms = image_poll_timeout_ms

    def _lookup(self, strategy: str | StrategyName) -> ChannelStrategyPort | None:
        name = StrategyName.parse(strategy)
        if name is None or name is StrategyName.NONE:
            return None
        return self._registry.get(name)

    async def resolve(self, page: Any, profile: SiteProfile) -> ResolutionResult:
        if StrategyName.parse(profile.strategy) is StrategyName.NONE or not profile.channel:
            return ResolutionResult.ok()

        strategy = self._lookup(profile.strategy)
        if strategy is None:
            log.warning(
                "channel_strategy_unknown",
                strategy=profile.strategy,
                channel=profile.channel,
            )
            return ResolutionResult.fail(
                f"Unknown channel selection strategy: {profile.strategy}."
            )

        if strategy.waits_for_image:
            await self._wait_for_image(page, profile.channel)

        try:
            result = await strategy.execute(page, profile)
        except TuningError as exc:
            result = ResolutionResult.fail(str(exc))
        except Exception as exc:  # noqa: BLE001
            log.exception(
                "channel_strategy_crashed",
                strategy=strategy.name.value,
                channel=profile.channel,
            )
            result = ResolutionResult.fail(
                f"Unexpected error while selecting {profile.channel}: {exc}"
            )

        if not result.success:
            log.warning(
                "channel_select_failed",
                strategy=strategy.name.value,
                channel=profile.channel,
                reason=result.reason or "Unknown reason.",
            )
        else:
            log.info(
                "channel_selected",
                strategy=strategy.name.value,
                channel=profile.channel,
            )
        return result

    async def _wait_for_image(self, page: Any, fragment: str) -> None:
        """Wait for the channel logo to load. Timeouts are not fatal."""
        try:
            await page.wait_for_function(
                _IMAGE_READY_JS, arg=fragment, timeout=self._image_poll_timeout_ms
            )
        except Exception:  # noqa: BLE001
            # The strategy's own scan reports the precise miss.
            log.debug("channel_image_not_ready", channel=fragment)

    def clear_all_caches(self) -> None:
        """Drop every strategy's session state (call on browser restart)."""
        for strategy in self._registry:
            strategy.clear_cache()
        log.info("channel_caches_cleared")

    async def resolve_direct_url(
        self, profile: SiteProfile, page: Any | None = None
    ) -> str | None:
        strategy = self._lookup(profile.strategy)
        if strategy is None or not profile.channel:
            return None
        return await strategy.resolve_direct_url(profile, page)

    def invalidate_direct_url(self, profile: SiteProfile) -> None:
        strategy = self._lookup(profile.strategy)
        if strategy is not None and profile.channel:
            strategy.invalidate_direct_url(profile)

    async def discover_channels(
        self, page: Any, profile: SiteProfile
    ) -> list[DiscoveredChannel]:
        """List every channel the profile's provider guide offers."""
        strategy = self._lookup(profile.strategy)
        if strategy is None:
            return []
        try:
            channels = await strategy.discover_channels(page, profile)
        except TuningError as exc:
            log.warning(
                "channel_discovery_failed",
                strategy=strategy.name.value,
                reason=str(exc),
            )
            return []
        log.info(
            "channel_discovery_complete",
            strategy=strategy.name.value,
            count=len(channels),
        )
        return channels
