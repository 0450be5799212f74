from .channel_strategy import ChannelStrategyPort
from .strategy_registry import StrategyRegistryPort

__all__ = ["ChannelStrategyPort", "StrategyRegistryPort"]
