"""Port for looking up channel strategies by name."""

from __future__ import annotations

from typing import Iterator, Protocol, runtime_checkable

from guidetuner.domain.entities.tuning import StrategyName
from guidetuner.domain.ports.channel_strategy import ChannelStrategyPort


@runtime_checkable
class StrategyRegistryPort(Protocol):
    """Closed mapping from ``StrategyName`` to its implementation."""

    def get(self, name: StrategyName) -> ChannelStrategyPort | None: ...
    def __iter__(self) -> Iterator[ChannelStrategyPort]: ...
