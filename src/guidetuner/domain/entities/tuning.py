"""Domain entities for channel tuning.

Pure value objects: no Playwright imports, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StrategyName(str, Enum):
    """Closed set of channel selection strategies."""

    NONE = "none"
    GUIDE_GRID = "guideGrid"
    HBO_GRID = "hboGrid"
    THUMBNAIL_ROW = "thumbnailRow"
    TILE_CLICK = "tileClick"
    YOUTUBE_GRID = "youtubeGrid"
    FOX_GRID = "foxGrid"

    @classmethod
    def parse(cls, value: str | StrategyName | None) -> StrategyName | None:
        """Return the matching member, or ``None`` for unknown values."""
        if isinstance(value, StrategyName):
            return value
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class SiteProfile:
    """Per-channel tuning configuration, immutable for one tune.

    ``channel`` means different things per strategy: an image URL
    fragment (tileClick, thumbnailRow), a display name (guideGrid,
    hboGrid, youtubeGrid) or a station code (foxGrid).
    """

    strategy: str
    channel: str | None = None
    list_selector: str | None = None
    play_selector: str | None = None
    match_selector: str | None = None
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.strategy


@dataclass(frozen=True)
class ClickTarget:
    """Viewport coordinates of a located, scrolled-into-view element."""

    x: float
    y: float


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of one channel resolution.

    ``reason`` is only set on failure and names what was searched.
    """

    success: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> ResolutionResult:
        return cls(success=True)

    @classmethod
    def fail(cls, reason: str) -> ResolutionResult:
        return cls(success=False, reason=reason)


@dataclass(frozen=True)
class RenderedChannel:
    """One channel entry observed in a single DOM snapshot."""

    name: str  # normalized
    dom_index: int
    row_number: int | None = None
    display_name: str = ""


@dataclass(frozen=True)
class GridMetrics:
    """Geometry of a scroll-virtualized guide grid."""

    row_height: float
    total_rows: int
    base_offset: float

    def scroll_offset(self, row: int) -> float:
        """Document scroll position that places *row* at the top."""
        return self.base_offset + row * self.row_height


@dataclass(frozen=True)
class CachedRow:
    """Row cache entry.

    ``rendered_name`` is the normalized text expected at ``row``.  It
    differs from the cache key when the row was inferred (e.g. ``abc``
    cached as the row rendered as ``wls``).
    """

    row: int
    rendered_name: str


@dataclass(frozen=True)
class DiscoveredChannel:
    """Channel enumerated from a provider guide for diagnostics."""

    name: str
    channel_selector: str
    affiliate: str | None = None
