"""Port for per-provider channel resolution strategies."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)


@runtime_checkable
class ChannelStrategyPort(Protocol):
    """Finds and activates a channel inside one provider's guide UI.

    ``page`` is a Playwright ``Page`` (typed ``Any`` here so the domain
    stays free of browser imports).  Every code path of ``execute``
    ends in a ``ResolutionResult``.
    """

    @property
    def name(self) -> StrategyName:
        """Strategy this implementation is registered under."""
        ...

    @property
    def waits_for_image(self) -> bool:
        """True when the channel identifier is an image URL fragment."""
        ...

    async def execute(self, page: Any, profile: SiteProfile) -> ResolutionResult:
        """Locate and activate ``profile.channel`` on *page*."""
        ...

    def clear_cache(self) -> None:
        """Drop all session-scoped state held by this strategy."""
        ...

    async def resolve_direct_url(
        self, profile: SiteProfile, page: Any | None = None
    ) -> str | None:
        """Return a URL that plays the channel directly, if known."""
        ...

    def invalidate_direct_url(self, profile: SiteProfile) -> None:
        """Forget the direct URL for the profile's channel."""
        ...

    async def discover_channels(
        self, page: Any, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        """Walk the guide and return every channel that can be tuned."""
        ...
