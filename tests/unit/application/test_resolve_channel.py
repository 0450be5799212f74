"""Tests for the ChannelResolver use case."""

from __future__ import annotations

from unittest.mock import AsyncMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guidetuner.application.use_cases import resolve_channel
from guidetuner.application.use_cases.resolve_channel import ChannelResolver
from guidetuner.domain.entities.tuning import ResolutionResult, SiteProfile, StrategyName
from guidetuner.domain.tuning.exceptions import PageClosedError, TuningError
from guidetuner.infrastructure.tuning.registry import StrategyRegistry


def _resolver(*strategies, image_poll_timeout_ms: int = 3000) -> ChannelResolver:
    return ChannelResolver(
        StrategyRegistry(list(strategies)), image_poll_timeout_ms=image_poll_timeout_ms
    )


class TestDispatch:
    async def test_none_strategy_is_noop_success(self, mock_page, make_strategy) -> None:
        strategy = make_strategy(StrategyName.TILE_CLICK)
        resolver = _resolver(strategy)

        result = await resolver.resolve(mock_page, SiteProfile("none", "espn"))

        assert result == ResolutionResult.ok()
        assert strategy.executed == []
        assert mock_page.mock_calls == []

    async def test_missing_channel_is_noop_success(
        self, mock_page, make_strategy
    ) -> None:
        strategy = make_strategy(StrategyName.TILE_CLICK)
        resolver = _resolver(strategy)

        result = await resolver.resolve(mock_page, SiteProfile("tileClick", None))

        assert result.success
        assert strategy.executed == []

    async def test_unknown_strategy_fails_without_touching_page(
        self, mock_page, make_strategy
    ) -> None:
        resolver = _resolver(make_strategy(StrategyName.TILE_CLICK))

        result = await resolver.resolve(mock_page, SiteProfile("huluGrid", "CNN"))

        assert result.reason == "Unknown channel selection strategy: huluGrid."
        assert mock_page.mock_calls == []

    async def test_known_but_unregistered_strategy_fails(
        self, mock_page, make_strategy
    ) -> None:
        resolver = _resolver(make_strategy(StrategyName.TILE_CLICK))

        result = await resolver.resolve(mock_page, SiteProfile("foxGrid", "WFLD"))

        assert not result.success
        assert "foxGrid" in (result.reason or "")

    async def test_dispatches_profile_to_strategy(
        self, mock_page, make_strategy
    ) -> None:
        strategy = make_strategy(StrategyName.FOX_GRID)
        resolver = _resolver(strategy)
        profile = SiteProfile("foxGrid", "WFLD")

        result = await resolver.resolve(mock_page, profile)

        assert result.success
        assert strategy.executed == [profile]

    async def test_strategy_failure_returned_verbatim(
        self, mock_page, make_strategy
    ) -> None:
        failure = ResolutionResult.fail("Station code WFLD not found in Fox.com guide grid.")
        resolver = _resolver(make_strategy(StrategyName.FOX_GRID, result=failure))

        result = await resolver.resolve(mock_page, SiteProfile("foxGrid", "WFLD"))

        assert result == failure


class TestImageWait:
    async def test_waits_for_logo_before_image_strategies(
        self, mock_page, make_strategy
    ) -> None:
        strategy = make_strategy(StrategyName.TILE_CLICK, waits_for_image=True)
        resolver = _resolver(strategy, image_poll_timeout_ms=1234)

        await resolver.resolve(mock_page, SiteProfile("tileClick", "espn-logo"))

        mock_page.wait_for_function.assert_awaited_once_with(
            resolve_channel._IMAGE_READY_JS, arg="espn-logo", timeout=1234
        )
        assert len(strategy.executed) == 1

    async def test_logo_timeout_is_not_fatal(self, mock_page, make_strategy) -> None:
        mock_page.wait_for_function = AsyncMock(side_effect=PlaywrightTimeoutError("t"))
        strategy = make_strategy(StrategyName.TILE_CLICK, waits_for_image=True)
        resolver = _resolver(strategy)

        result = await resolver.resolve(mock_page, SiteProfile("tileClick", "espn"))

        assert result.success
        assert len(strategy.executed) == 1

    async def test_name_strategies_skip_logo_wait(self, mock_page, make_strategy) -> None:
        resolver = _resolver(make_strategy(StrategyName.GUIDE_GRID))

        await resolver.resolve(mock_page, SiteProfile("guideGrid", "CNN"))

        mock_page.wait_for_function.assert_not_awaited()


class TestErrorConversion:
    async def test_tuning_error_becomes_failure(self, mock_page, make_strategy) -> None:
        error = PageClosedError("Page was closed while reading guide rows.")
        resolver = _resolver(make_strategy(StrategyName.GUIDE_GRID, error=error))

        result = await resolver.resolve(mock_page, SiteProfile("guideGrid", "CNN"))

        assert result.reason == "Page was closed while reading guide rows."

    async def test_unexpected_error_becomes_failure(
        self, mock_page, make_strategy
    ) -> None:
        resolver = _resolver(
            make_strategy(StrategyName.GUIDE_GRID, error=KeyError("rowHeight"))
        )

        result = await resolver.resolve(mock_page, SiteProfile("guideGrid", "CNN"))

        assert not result.success
        assert result.reason is not None
        assert result.reason.startswith("Unexpected error while selecting CNN:")


class TestCapabilityHooks:
    def test_clear_all_caches_reaches_every_strategy(self, make_strategy) -> None:
        a = make_strategy(StrategyName.GUIDE_GRID)
        b = make_strategy(StrategyName.HBO_GRID)
        resolver = _resolver(a, b)

        resolver.clear_all_caches()

        assert (a.cleared, b.cleared) == (1, 1)

    async def test_direct_url_delegated(self, make_strategy) -> None:
        strategy = make_strategy(StrategyName.HBO_GRID)
        strategy.direct_urls["HBO"] = "https://play.example.test/watch/hbo"
        resolver = _resolver(strategy)
        profile = SiteProfile("hboGrid", "HBO")

        assert await resolver.resolve_direct_url(profile) == (
            "https://play.example.test/watch/hbo"
        )
        resolver.invalidate_direct_url(profile)
        assert await resolver.resolve_direct_url(profile) is None

    async def test_direct_url_none_for_unknown_strategy(self, make_strategy) -> None:
        resolver = _resolver(make_strategy(StrategyName.HBO_GRID))

        assert await resolver.resolve_direct_url(SiteProfile("bogus", "HBO")) is None
        assert await resolver.resolve_direct_url(SiteProfile("none", "HBO")) is None

    async def test_discover_delegated(self, mock_page, make_strategy) -> None:
        resolver = _resolver(make_strategy(StrategyName.GUIDE_GRID))

        found = await resolver.discover_channels(mock_page, SiteProfile("guideGrid"))

        assert [c.name for c in found] == ["CNN"]

    async def test_discover_swallows_tuning_error(
        self, mock_page, make_strategy
    ) -> None:
        strategy = make_strategy(StrategyName.GUIDE_GRID)
        strategy.discover_channels = AsyncMock(side_effect=TuningError("grid gone"))
        resolver = _resolver(strategy)

        assert await resolver.discover_channels(mock_page, SiteProfile("guideGrid")) == []

    async def test_discover_unknown_strategy_empty(self, mock_page) -> None:
        resolver = _resolver()

        assert await resolver.discover_channels(mock_page, SiteProfile("bogus")) == []
