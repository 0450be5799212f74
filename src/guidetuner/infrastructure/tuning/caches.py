"""Session-scoped caches owned by the channel strategies.

Each cache is an explicit object constructed once and handed to the
strategy that mutates it.  A lock per cache keeps concurrent resolutions
on different pages safe; every operation is a short dict access.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from guidetuner.domain.entities.tuning import CachedRow, RenderedChannel


class RowCache:
    """Normalized channel name -> row position in a virtualized guide."""

    def __init__(self) -> None:
        self._rows: dict[str, CachedRow] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CachedRow | None:
        with self._lock:
            return self._rows.get(name)

    def put(self, name: str, entry: CachedRow) -> None:
        with self._lock:
            self._rows[name] = entry

    def record(self, channels: Iterable[RenderedChannel]) -> int:
        """Store every channel that carries a row number. Returns the count."""
        stored = 0
        with self._lock:
            for channel in channels:
                if channel.row_number is None:
                    continue
                self._rows[channel.name] = CachedRow(
                    row=channel.row_number, rendered_name=channel.name
                )
                stored += 1
        return stored

    def evict(self, name: str) -> bool:
        with self._lock:
            return self._rows.pop(name, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._rows


class DiscoveredUrlCache:
    """Discovered landing sub-page URL plus per-channel watch URLs."""

    def __init__(self) -> None:
        self._page_url: str | None = None
        self._watch_urls: dict[str, str] = {}
        self._display_names: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def page_url(self) -> str | None:
        with self._lock:
            return self._page_url

    def set_page_url(self, url: str) -> None:
        with self._lock:
            self._page_url = url

    def invalidate_page_url(self) -> None:
        with self._lock:
            self._page_url = None

    def get_watch_url(self, name: str) -> str | None:
        with self._lock:
            return self._watch_urls.get(name)

    def put_watch_url(
        self, name: str, url: str, *, display_name: str | None = None
    ) -> None:
        with self._lock:
            self._watch_urls[name] = url
            self._display_names[name] = display_name or name

    def watch_entries(self) -> list[tuple[str, str]]:
        """Snapshot of (display name, watch URL) pairs in insertion order."""
        with self._lock:
            return [
                (self._display_names.get(name, name), url)
                for name, url in self._watch_urls.items()
            ]

    def drop_watch_url(self, name: str) -> None:
        with self._lock:
            self._watch_urls.pop(name, None)
            self._display_names.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._page_url = None
            self._watch_urls.clear()
            self._display_names.clear()


@dataclass
class TuningCaches:
    """Every cache the default strategies use, created empty per session."""

    guide_rows: RowCache = field(default_factory=RowCache)
    rail_urls: DiscoveredUrlCache = field(default_factory=DiscoveredUrlCache)
