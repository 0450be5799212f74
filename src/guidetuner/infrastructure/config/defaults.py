"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "guidetuner",
    "environment": "dev",
    "playwright": {
        "headless": True,
        "timeout_ms": 30_000,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "tuning": {
        "image_poll_timeout_ms": 3000,
        "channel_switch_delay_ms": 4000,
        "navigation_timeout_ms": 10_000,
        "video_timeout_ms": 10_000,
        "evaluate_timeout_ms": 15_000,
        "settle_delay_ms": 200,
        "reveal_settle_ms": 300,
        "grid_initial_row_timeout_ms": 5000,
        "grid_max_iterations": 10,
        "grid_linear_stride": 10,
        "click_attempts": 3,
        "retry_play_timeout_ms": 1000,
        "click_retry_delay_ms": 1500,
        "call_sign_pattern": r"^[WK][A-Z]{2,3}$",
    },
}
