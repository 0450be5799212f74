from .tuning import (
    CachedRow,
    ClickTarget,
    DiscoveredChannel,
    GridMetrics,
    RenderedChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)

__all__ = [
    "CachedRow",
    "ClickTarget",
    "DiscoveredChannel",
    "GridMetrics",
    "RenderedChannel",
    "ResolutionResult",
    "SiteProfile",
    "StrategyName",
]
