from .resolve_channel import ChannelResolver

__all__ = ["ChannelResolver"]
