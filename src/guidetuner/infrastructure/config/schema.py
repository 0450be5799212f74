"""Pydantic configuration models with validation."""

from __future__ import annotations

import re
from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


class TuningConfig(BaseModel):
    """Timeouts and search limits for channel resolution.

    All durations are milliseconds.  Values come from the YAML ``tuning``
    section or ``GUIDETUNER_TUNING_*`` env vars.
    """

    image_poll_timeout_ms: int = Field(
        default=3000,
        description="Max wait for the channel image to load before dispatch.",
    )
    channel_switch_delay_ms: int = Field(
        default=4000,
        description="Max wait for the video element to start a new stream.",
    )
    navigation_timeout_ms: int = Field(
        default=10_000,
        description="Timeout for page.goto() calls made by strategies.",
    )
    video_timeout_ms: int = Field(
        default=10_000,
        description="Timeout for guide, rail and play control appearance.",
    )
    evaluate_timeout_ms: int = Field(
        default=15_000,
        description="Upper bound for a single in-page evaluation.",
    )
    settle_delay_ms: int = Field(
        default=200,
        description="Pause after scrolling before reading or clicking.",
    )
    reveal_settle_ms: int = Field(
        default=300,
        description="Pause after activating the reveal-guide control.",
    )
    grid_initial_row_timeout_ms: int = Field(
        default=5000,
        description="First wait for guide rows before re-activating the reveal control.",
    )
    grid_max_iterations: int = Field(
        default=10,
        description="Binary search iteration budget for virtualized guides.",
    )
    grid_linear_stride: int = Field(
        default=10,
        description="Rows skipped per step during the linear scan fallback.",
    )
    click_attempts: int = Field(
        default=3,
        description="Activation attempts when a play control is configured.",
    )
    retry_play_timeout_ms: int = Field(
        default=1000,
        description="Play control wait for every attempt except the last.",
    )
    click_retry_delay_ms: int = Field(
        default=1500,
        description="Base settle delay between activation attempts (scaled by attempt).",
    )
    call_sign_pattern: str = Field(
        default=r"^[WK][A-Z]{2,3}$",
        description=(
            "Case-insensitive regex for local station call signs. The default "
            "matches US broadcast call signs; override for other regions."
        ),
    )

    @field_validator(
        "image_poll_timeout_ms",
        "channel_switch_delay_ms",
        "navigation_timeout_ms",
        "video_timeout_ms",
        "evaluate_timeout_ms",
        "grid_initial_row_timeout_ms",
        "retry_play_timeout_ms",
        "grid_max_iterations",
        "grid_linear_stride",
        "click_attempts",
    )
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be > 0")
        return v

    @field_validator("settle_delay_ms", "reveal_settle_ms", "click_retry_delay_ms")
    @classmethod
    def _validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @field_validator("call_sign_pattern")
    @classmethod
    def _validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid call_sign_pattern: {exc}") from exc
        return v


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (playwright/logging/tuning).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="guidetuner", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # Playwright (YAML section: playwright.*)
    playwright_headless: bool = Field(
        default=True,
        validation_alias=AliasChoices(
            "playwright_headless",
            AliasPath("playwright", "headless"),
        ),
        description="Run Playwright headless.",
    )
    playwright_timeout_ms: int = Field(
        default=30_000,
        validation_alias=AliasChoices(
            "playwright_timeout_ms",
            AliasPath("playwright", "timeout_ms"),
        ),
        description="Default Playwright timeout in milliseconds.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    # Channel resolution (YAML section: tuning.*)
    tuning: TuningConfig = Field(default_factory=TuningConfig)

    @field_validator("playwright_timeout_ms")
    @classmethod
    def _validate_playwright_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("playwright_timeout_ms must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "playwright": {
                "headless": self.playwright_headless,
                "timeout_ms": self.playwright_timeout_ms,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "tuning": self.tuning.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    Intended usage:
    - load.py creates EnvOverrides() to read GUIDETUNER_* variables,
      converts to dict of set values, merges into YAML/defaults,
      then validates AppConfig.

    Supported env var examples (flat, explicit):
    - GUIDETUNER_PLAYWRIGHT_HEADLESS
    - GUIDETUNER_LOG_LEVEL
    - GUIDETUNER_TUNING_VIDEO_TIMEOUT_MS
    - GUIDETUNER_TUNING_CALL_SIGN_PATTERN
    """

    model_config = SettingsConfigDict(
        env_prefix="GUIDETUNER_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    playwright_headless: Optional[bool] = None
    playwright_timeout_ms: Optional[int] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    tuning_image_poll_timeout_ms: Optional[int] = None
    tuning_channel_switch_delay_ms: Optional[int] = None
    tuning_navigation_timeout_ms: Optional[int] = None
    tuning_video_timeout_ms: Optional[int] = None
    tuning_evaluate_timeout_ms: Optional[int] = None
    tuning_settle_delay_ms: Optional[int] = None
    tuning_reveal_settle_ms: Optional[int] = None
    tuning_grid_initial_row_timeout_ms: Optional[int] = None
    tuning_grid_max_iterations: Optional[int] = None
    tuning_grid_linear_stride: Optional[int] = None
    tuning_click_attempts: Optional[int] = None
    tuning_retry_play_timeout_ms: Optional[int] = None
    tuning_click_retry_delay_ms: Optional[int] = None
    tuning_call_sign_pattern: Optional[str] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
