"""Channel resolution for scroll-virtualized, alphabetically sorted guides.

The live guide renders only a small window of rows (around 13) around
the current scroll offset.  Rows are sorted by network name, but local
affiliates are displayed by call sign (``WLS`` for ABC), so displayed
call signs are useless for ordering.  Resolution runs in tiers:

1. row cache (confirmed with one read)
2. binary search over the row range
3. position inference for affiliates searched by network name
4. linear scan in fixed strides

Every read of the window records all observed rows in the row cache.
"""

from __future__ import annotations

import re

import structlog
from playwright.async_api import Page

from guidetuner.domain.entities.tuning import (
    CachedRow,
    ClickTarget,
    DiscoveredChannel,
    GridMetrics,
    RenderedChannel,
    ResolutionResult,
    SiteProfile,
    StrategyName,
)
from guidetuner.infrastructure.config.schema import TuningConfig

from .base import ChannelStrategyBase
from .caches import RowCache
from .primitives import (
    click_element,
    collation_key,
    evaluate_with_timeout,
    locale_compare,
    log_available_channels,
    normalize_channel_name,
    scroll_and_click,
    settle,
    wait_for_play_button,
    wait_for_visible,
)

log = structlog.get_logger(__name__)

# Networks whose local stations appear under a call sign.
NETWORK_NAMES_WITH_AFFILIATES: frozenset[str] = frozenset(
    {"abc", "cbs", "cw", "fox", "nbc", "pbs"}
)

# Pause after re-activating the reveal control when rows did not appear.
_REVEAL_RETRY_SETTLE_MS = 500

_READ_METRICS_JS = """(rowSelector) => {
    const row = document.querySelector(rowSelector);
    if (!row) return null;
    const spacer = row.parentElement;
    const viewport = spacer ? spacer.parentElement : null;
    if (!spacer || !viewport) return null;
    const rowHeight = row.getBoundingClientRect().height;
    if (!rowHeight) return null;
    const scrollTop = document.documentElement.scrollTop;
    return {
        rowHeight: rowHeight,
        spacerHeight: spacer.offsetHeight,
        gridDocTop: viewport.getBoundingClientRect().top + scrollTop,
    };
}"""

_SCROLL_TO_JS = """(top) => {
    document.documentElement.scrollTop = top;
    return document.documentElement.scrollTop;
}"""

_READ_RENDERED_JS = """(args) => {
    const containers = document.querySelectorAll(`[data-testid^="${args.prefix}"]`);
    const out = [];
    containers.forEach((el, index) => {
        const testId = el.getAttribute("data-testid") || "";
        let row = null;
        const rowEl = el.closest(args.rowSelector);
        const label = (rowEl || el).querySelector(args.labelSelector);
        if (label) {
            const m = /row\\s+(\\d+)\\s+of\\s+(\\d+)/i.exec(label.textContent || "");
            if (m) row = parseInt(m[1], 10) - 1;
        }
        out.push({ display: testId.slice(args.prefix.length), dom: index, row: row });
    });
    return out;
}"""

_LOCATE_ON_NOW_JS = """(args) => {
    const norm = (s) => s.trim().replace(/\\s+/g, " ").toLowerCase();
    const containers = document.querySelectorAll(`[data-testid^="${args.prefix}"]`);
    for (const el of containers) {
        const testId = el.getAttribute("data-testid") || "";
        if (norm(testId.slice(args.prefix.length)) !== args.name) continue;
        const rowEl = el.closest(args.rowSelector);
        const cell = rowEl ? rowEl.querySelector(args.cellSelector) : null;
        if (!cell) return null;
        cell.scrollIntoView({ block: "center", inline: "center" });
        const rect = cell.getBoundingClientRect();
        if (!rect.width || !rect.height) return null;
        return { x: rect.left + rect.width / 2, y: rect.top + rect.height / 2 };
    }
    return null;
}"""

_ELEMENTS_AT_POINT_JS = """(point) => document.elementsFromPoint(point.x, point.y)
    .slice(0, 5)
    .map((el) => el.tagName.toLowerCase() + (el.className ? "." + String(el.className).split(" ").join(".") : ""))"""


class GuideGridStrategy(ChannelStrategyBase):
    """Virtualized live guide (Hulu style)."""

    name = StrategyName.GUIDE_GRID

    row_selector = '[data-testid="live-guide-row"]'
    channel_prefix = "live-guide-channel-kyber-"
    row_label_selector = '[data-testid="live-guide-channel-button"] .sr-only'
    on_now_selector = ".LiveGuideProgram--first"

    def __init__(
        self,
        config: TuningConfig | None = None,
        cache: RowCache | None = None,
        *,
        call_sign_pattern: str | None = None,
    ) -> None:
        super().__init__(config)
        self._cache = cache if cache is not None else RowCache()
        self._call_sign = re.compile(
            call_sign_pattern or self._config.call_sign_pattern, re.IGNORECASE
        )

    @property
    def cache(self) -> RowCache:
        return self._cache

    def clear_cache(self) -> None:
        self._cache.clear()
        log.debug("grid_cache_cleared")

    def is_call_sign(self, name: str) -> bool:
        return bool(self._call_sign.match(name.strip()))

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def execute(self, page: Page, profile: SiteProfile) -> ResolutionResult:
        channel = profile.channel or ""
        target = normalize_channel_name(channel)

        failure = await self._reveal_guide(page, profile)
        if failure is not None:
            return failure

        metrics = await self._read_metrics(page)
        if metrics is None:
            return ResolutionResult.fail("Could not locate channel grid spacer element.")

        observed: set[str] = set()
        hit = await self._find_row(page, metrics, target, observed)
        if hit is None:
            log_available_channels(profile.label, channel, observed)
            return ResolutionResult.fail(
                f"Could not find channel {channel} in guide grid. Check that the "
                "name matches the guide listing exactly, or run channel discovery "
                "to see the names the guide offers."
            )

        return await self._activate(page, profile, hit)

    # ------------------------------------------------------------------
    # Reveal + metrics
    # ------------------------------------------------------------------

    async def _reveal_guide(
        self, page: Page, profile: SiteProfile
    ) -> ResolutionResult | None:
        cfg = self._config
        if profile.list_selector:
            # A hidden control is not fatal: the guide may already be open.
            if await wait_for_visible(
                page, profile.list_selector, timeout_ms=cfg.video_timeout_ms
            ):
                await click_element(page, profile.list_selector)
                await settle(cfg.reveal_settle_ms)
            else:
                log.warning(
                    "grid_list_selector_unavailable",
                    list_selector=profile.list_selector,
                    timeout_ms=cfg.video_timeout_ms,
                )

        if await wait_for_visible(
            page, self.row_selector, timeout_ms=cfg.grid_initial_row_timeout_ms
        ):
            return None

        # The guide can sit in a transitional state after the first click.
        log.info("grid_rows_not_visible_retrying", list_selector=profile.list_selector)
        if profile.list_selector:
            await click_element(page, profile.list_selector)
            await settle(_REVEAL_RETRY_SETTLE_MS)

        if await wait_for_visible(
            page, self.row_selector, timeout_ms=cfg.video_timeout_ms
        ):
            return None
        return ResolutionResult.fail(
            "Channel guide grid did not appear. The live guide may not have "
            "loaded or the reveal control may have changed."
        )

    async def _read_metrics(self, page: Page) -> GridMetrics | None:
        raw = await evaluate_with_timeout(
            page,
            _READ_METRICS_JS,
            self.row_selector,
            timeout_ms=self._config.evaluate_timeout_ms,
            action="measuring the guide grid",
        )
        if not raw or not raw.get("rowHeight"):
            return None
        row_height = float(raw["rowHeight"])
        total_rows = round(float(raw["spacerHeight"]) / row_height)
        if total_rows <= 0:
            return None
        metrics = GridMetrics(
            row_height=row_height,
            total_rows=total_rows,
            base_offset=float(raw["gridDocTop"]),
        )
        log.debug(
            "grid_metrics",
            row_height=metrics.row_height,
            total_rows=metrics.total_rows,
            base_offset=metrics.base_offset,
        )
        return metrics

    # ------------------------------------------------------------------
    # Snapshot reads
    # ------------------------------------------------------------------

    async def _read_rendered(self, page: Page) -> list[RenderedChannel]:
        raw = await evaluate_with_timeout(
            page,
            _READ_RENDERED_JS,
            {
                "prefix": self.channel_prefix,
                "rowSelector": self.row_selector,
                "labelSelector": self.row_label_selector,
            },
            timeout_ms=self._config.evaluate_timeout_ms,
            action="reading guide rows",
        )
        channels: list[RenderedChannel] = []
        for item in raw or []:
            display = str(item.get("display") or "")
            name = normalize_channel_name(display)
            if not name:
                continue
            row = item.get("row")
            channels.append(
                RenderedChannel(
                    name=name,
                    dom_index=int(item.get("dom", len(channels))),
                    row_number=int(row) if row is not None else None,
                    display_name=display.strip(),
                )
            )
        return channels

    async def _read_at(
        self, page: Page, metrics: GridMetrics, row: int, observed: set[str]
    ) -> list[RenderedChannel]:
        """Scroll *row* to the top, settle, read, and record every row seen."""
        await evaluate_with_timeout(
            page,
            _SCROLL_TO_JS,
            metrics.scroll_offset(row),
            timeout_ms=self._config.evaluate_timeout_ms,
            action=f"scrolling the guide to row {row}",
        )
        await settle(self._config.settle_delay_ms)
        snapshot = await self._read_rendered(page)
        self._cache.record(snapshot)
        observed.update(channel.display_name or channel.name for channel in snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Search tiers
    # ------------------------------------------------------------------

    async def _find_row(
        self,
        page: Page,
        metrics: GridMetrics,
        target: str,
        observed: set[str],
    ) -> CachedRow | None:
        cached = self._cache.get(target)
        if cached is not None:
            confirmed = await self._confirm_cached(page, metrics, target, cached, observed)
            if confirmed is not None:
                return confirmed

        hit = await self._binary_search(page, metrics, target, observed)
        if hit is not None:
            return hit
        return await self._linear_scan(page, metrics, target, observed)

    async def _confirm_cached(
        self,
        page: Page,
        metrics: GridMetrics,
        target: str,
        cached: CachedRow,
        observed: set[str],
    ) -> CachedRow | None:
        snapshot = await self._read_at(page, metrics, cached.row, observed)
        for channel in snapshot:
            if channel.name != cached.rendered_name:
                continue
            row = channel.row_number if channel.row_number is not None else cached.row
            confirmed = CachedRow(row=row, rendered_name=cached.rendered_name)
            if confirmed != cached:
                self._cache.put(target, confirmed)
            log.debug("grid_cache_hit", channel=target, row=row)
            return confirmed

        self._cache.evict(target)
        log.info(
            "grid_cache_stale",
            channel=target,
            cached_row=cached.row,
            rendered_name=cached.rendered_name,
        )
        return None

    async def _binary_search(
        self,
        page: Page,
        metrics: GridMetrics,
        target: str,
        observed: set[str],
    ) -> CachedRow | None:
        low, high = 0, metrics.total_rows - 1

        for iteration in range(self._config.grid_max_iterations):
            if low > high:
                break
            mid = (low + high) // 2
            snapshot = await self._read_at(page, metrics, mid, observed)
            log.debug(
                "grid_binary_iteration",
                channel=target,
                iteration=iteration,
                low=low,
                high=high,
                mid=mid,
                rendered=len(snapshot),
            )
            if not snapshot:
                continue

            match = self._exact_match(snapshot, target, mid)
            if match is not None:
                return match

            anchors = [c for c in snapshot if not self.is_call_sign(c.name)]
            if not anchors:
                # Call signs sort by hidden network names; no direction signal.
                low = mid + 1
                continue

            if locale_compare(target, anchors[0].name) < 0:
                high = mid - 1
            elif locale_compare(target, anchors[-1].name) > 0:
                low = mid + 1
            else:
                inferred = self.infer_affiliate(snapshot, target, fallback_row=mid)
                if inferred is not None:
                    self._cache.put(target, inferred)
                    log.info(
                        "grid_affiliate_inferred",
                        channel=target,
                        call_sign=inferred.rendered_name,
                        row=inferred.row,
                    )
                    return inferred
                break

        log.info("grid_binary_search_exhausted", channel=target)
        return None

    async def _linear_scan(
        self,
        page: Page,
        metrics: GridMetrics,
        target: str,
        observed: set[str],
    ) -> CachedRow | None:
        stride = self._config.grid_linear_stride
        for row in range(0, metrics.total_rows, stride):
            snapshot = await self._read_at(page, metrics, row, observed)
            match = self._exact_match(snapshot, target, row)
            if match is not None:
                log.info("grid_linear_scan_hit", channel=target, row=match.row)
                return match
        return None

    def _exact_match(
        self, snapshot: list[RenderedChannel], target: str, fallback_row: int
    ) -> CachedRow | None:
        for channel in snapshot:
            if channel.name == target:
                row = channel.row_number if channel.row_number is not None else fallback_row
                hit = CachedRow(row=row, rendered_name=channel.name)
                self._cache.put(target, hit)
                return hit
        return None

    def infer_affiliate(
        self,
        snapshot: list[RenderedChannel],
        target: str,
        *,
        fallback_row: int = 0,
    ) -> CachedRow | None:
        """Infer which call sign stands in for the network *target*.

        The guide sorts affiliates by their network name, so the call
        sign rendered between the two anchors that bracket *target* is
        the affiliate.
        """
        anchors = [c for c in snapshot if not self.is_call_sign(c.name)]
        if not anchors:
            return None

        after = next(
            (i for i, a in enumerate(anchors) if locale_compare(a.name, target) > 0),
            None,
        )
        if after is None:
            lo, hi = anchors[-1].dom_index, len(snapshot)
        elif after == 0:
            lo, hi = -1, anchors[0].dom_index
        else:
            lo, hi = anchors[after - 1].dom_index, anchors[after].dom_index

        for channel in snapshot:
            if lo < channel.dom_index < hi and self.is_call_sign(channel.name):
                row = channel.row_number if channel.row_number is not None else fallback_row
                return CachedRow(row=row, rendered_name=channel.name)
        return None

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def _locate_on_now(self, page: Page, rendered_name: str) -> ClickTarget | None:
        point = await evaluate_with_timeout(
            page,
            _LOCATE_ON_NOW_JS,
            {
                "prefix": self.channel_prefix,
                "rowSelector": self.row_selector,
                "cellSelector": self.on_now_selector,
                "name": rendered_name,
            },
            timeout_ms=self._config.evaluate_timeout_ms,
            action="locating the current program cell",
        )
        if not point:
            return None
        return ClickTarget(x=point["x"], y=point["y"])

    async def _activate(
        self, page: Page, profile: SiteProfile, hit: CachedRow
    ) -> ResolutionResult:
        cfg = self._config
        channel = profile.channel or hit.rendered_name
        attempts = cfg.click_attempts if profile.play_selector else 1
        target: ClickTarget | None = None

        for attempt in range(1, attempts + 1):
            target = await self._locate_on_now(page, hit.rendered_name)
            if target is None:
                return ResolutionResult.fail(
                    f"Found {channel} in guide grid at row {hit.row}, but its "
                    "current program cell could not be located."
                )
            await scroll_and_click(page, target, settle_ms=cfg.settle_delay_ms)

            if not profile.play_selector:
                return ResolutionResult.ok()

            final = attempt == attempts
            timeout = cfg.video_timeout_ms if final else cfg.retry_play_timeout_ms
            if await wait_for_play_button(
                page,
                profile.play_selector,
                timeout_ms=timeout,
                settle_ms=cfg.settle_delay_ms,
                evaluate_timeout_ms=cfg.evaluate_timeout_ms,
            ):
                return ResolutionResult.ok()

            log.info(
                "grid_play_button_missing",
                channel=channel,
                attempt=attempt,
                attempts=attempts,
            )
            if not final:
                await settle(cfg.click_retry_delay_ms * attempt)

        await self._log_click_diagnostics(page, target)
        return ResolutionResult.fail(
            f"Play button {profile.play_selector} did not appear after selecting "
            f"{channel} in guide grid ({attempts} attempts)."
        )

    async def _log_click_diagnostics(
        self, page: Page, target: ClickTarget | None
    ) -> None:
        if target is None:
            return
        try:
            stack = await evaluate_with_timeout(
                page,
                _ELEMENTS_AT_POINT_JS,
                {"x": target.x, "y": target.y},
                timeout_ms=self._config.evaluate_timeout_ms,
                action="inspecting the click target",
            )
        except Exception:  # noqa: BLE001
            return  # diagnostics are best-effort
        log.debug("grid_click_target_stack", x=target.x, y=target.y, elements=stack)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover_channels(
        self, page: Page, profile: SiteProfile | None = None
    ) -> list[DiscoveredChannel]:
        """Walk the whole guide and list every channel, with affiliates."""
        profile = profile or SiteProfile(strategy=self.name.value)
        if await self._reveal_guide(page, profile) is not None:
            return []
        metrics = await self._read_metrics(page)
        if metrics is None:
            return []

        by_row: dict[int, RenderedChannel] = {}
        observed: set[str] = set()
        for row in range(0, metrics.total_rows, self._config.grid_linear_stride):
            for channel in await self._read_at(page, metrics, row, observed):
                key = channel.row_number if channel.row_number is not None else row
                by_row.setdefault(key, channel)

        # Reindex in row order so dom_index reflects guide order.
        ordered = [
            RenderedChannel(
                name=c.name,
                dom_index=i,
                row_number=c.row_number,
                display_name=c.display_name,
            )
            for i, c in enumerate(by_row[r] for r in sorted(by_row))
        ]

        found: list[DiscoveredChannel] = [
            DiscoveredChannel(
                name=c.display_name or c.name, channel_selector=c.display_name or c.name
            )
            for c in ordered
        ]
        present = {c.name for c in ordered}
        for network in sorted(NETWORK_NAMES_WITH_AFFILIATES - present):
            inferred = self.infer_affiliate(ordered, network)
            if inferred is None:
                continue
            affiliate = next(
                (c.display_name for c in ordered if c.name == inferred.rendered_name),
                inferred.rendered_name,
            )
            found.append(
                DiscoveredChannel(
                    name=network.upper(), channel_selector=network.upper(), affiliate=affiliate
                )
            )

        found.sort(key=lambda c: collation_key(c.name))
        log.info("grid_channels_discovered", count=len(found))
        return found
