"""Capability base for channel strategies."""

from __future__ import annotations

from typing import Any

from guidetuner.domain.entities.tuning import (
    DiscoveredChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)
from guidetuner.infrastructure.config.schema import TuningConfig


class ChannelStrategyBase:
    """Shared base for channel strategies.

    Subclasses **must** set ``name`` and override ``execute()``.  The
    cache, direct-URL and discovery hooks default to no-ops so the
    dispatcher can call them on every strategy.
    """

    name: StrategyName
    waits_for_image: bool = False

    def __init__(self, config: TuningConfig | None = None) -> None:
        self._config = config or TuningConfig()

    @property
    def config(self) -> TuningConfig:
        return self._config

    async def execute(self, page: Any, profile: SiteProfile) -> ResolutionResult:
        raise NotImplementedError

    def clear_cache(self) -> None:
        return None

    async def resolve_direct_url(
        self, profile: SiteProfile, page: Any | None = None
    ) -> str | None:
        return None

    def invalidate_direct_url(self, profile: SiteProfile) -> None:
        return None

    async def discover_channels(
        self, page: Any, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        return []
