from __future__ import annotations

from .load import load_config
from .schema import AppConfig, EnvOverrides, TuningConfig

__all__ = ["AppConfig", "EnvOverrides", "TuningConfig", "load_config"]
