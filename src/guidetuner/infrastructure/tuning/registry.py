"""Registry mapping strategy names to channel strategies."""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from guidetuner.domain.entities.tuning import StrategyName
from guidetuner.domain.ports.channel_strategy import ChannelStrategyPort
from guidetuner.infrastructure.config.schema import TuningConfig

from .caches import TuningCaches
from .guide_grid import GuideGridStrategy
from .image_match import ThumbnailRowStrategy, TileClickStrategy
from .label_grid import LabelGridStrategy
from .rail_discovery import RailDiscoveryStrategy
from .station_grid import StationGridStrategy

log = structlog.get_logger(__name__)


class StrategyRegistry:
    """Closed mapping from ``StrategyName`` to one strategy instance.

    ``StrategyName.NONE`` is never registered; the dispatcher handles it
    before lookup.
    """

    def __init__(self, strategies: list[ChannelStrategyPort] | None = None) -> None:
        self._strategies: dict[StrategyName, ChannelStrategyPort] = {}
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: ChannelStrategyPort) -> None:
        if strategy.name is StrategyName.NONE:
            raise ValueError("the 'none' strategy cannot be registered")
        if strategy.name in self._strategies:
            raise ValueError(f"strategy already registered: {strategy.name.value}")
        self._strategies[strategy.name] = strategy
        log.debug("channel_strategy_registered", strategy=strategy.name.value)

    def get(self, name: StrategyName) -> ChannelStrategyPort | None:
        return self._strategies.get(name)

    @property
    def names(self) -> list[StrategyName]:
        return list(self._strategies)

    def __iter__(self) -> Iterator[ChannelStrategyPort]:
        return iter(list(self._strategies.values()))

    def __len__(self) -> int:
        return len(self._strategies)


def build_default_registry(
    config: TuningConfig | None = None,
    caches: TuningCaches | None = None,
) -> StrategyRegistry:
    """Construct every built-in strategy once, sharing *caches*."""
    config = config or TuningConfig()
    caches = caches or TuningCaches()
    return StrategyRegistry(
        [
            GuideGridStrategy(config, caches.guide_rows),
            RailDiscoveryStrategy(config, caches.rail_urls),
            ThumbnailRowStrategy(config),
            TileClickStrategy(config),
            LabelGridStrategy(config),
            StationGridStrategy(config),
        ]
    )
