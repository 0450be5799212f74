"""Composition root: wires config, caches and strategies into a resolver."""

from __future__ import annotations

import structlog

from guidetuner.application.use_cases.resolve_channel import ChannelResolver
from guidetuner.infrastructure.config.schema import AppConfig
from guidetuner.infrastructure.tuning.caches import TuningCaches
from guidetuner.infrastructure.tuning.registry import build_default_registry

log = structlog.get_logger(__name__)


def build_resolver(
    config: AppConfig, caches: TuningCaches | None = None
) -> ChannelResolver:
    """Create a resolver whose strategies share one set of session caches."""
    registry = build_default_registry(config.tuning, caches or TuningCaches())
    log.info(
        "channel_resolver_ready",
        strategies=[name.value for name in registry.names],
    )
    return ChannelResolver(
        registry, image_poll_timeout_ms=config.tuning.image_poll_timeout_ms
    )
