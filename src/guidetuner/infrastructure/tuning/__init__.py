from .base import ChannelStrategyBase
from .caches import DiscoveredUrlCache, RowCache, TuningCaches
from .guide_grid import GuideGridStrategy
from .image_match import ThumbnailRowStrategy, TileClickStrategy
from .label_grid import LabelGridStrategy
from .primitives import normalize_channel_name, scroll_and_click
from .rail_discovery import RailDiscoveryStrategy
from .registry import StrategyRegistry, build_default_registry
from .station_grid import StationGridStrategy

__all__ = [
    "ChannelStrategyBase",
    "DiscoveredUrlCache",
    "GuideGridStrategy",
    "LabelGridStrategy",
    "RailDiscoveryStrategy",
    "RowCache",
    "StationGridStrategy",
    "StrategyRegistry",
    "ThumbnailRowStrategy",
    "TileClickStrategy",
    "TuningCaches",
    "build_default_registry",
    "normalize_channel_name",
    "scroll_and_click",
]
