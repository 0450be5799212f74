from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides, TuningConfig

_SECTION_KEYS: set[str] = {"playwright", "logging", "tuning"}

# Flat keys (env vars, CLI flags) that are not tuning fields.
_FLAT_KEYS: dict[str, tuple[str, str]] = {
    "playwright_headless": ("playwright", "headless"),
    "playwright_timeout_ms": ("playwright", "timeout_ms"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Recursively merge `override` into `base` and return `base`.

    Nested mappings merge key by key; any other value replaces what is there.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, Mapping)
        ):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _flat_map() -> dict[str, tuple[str, str]]:
    """``tuning_<field>`` for every TuningConfig field, plus the fixed keys."""
    mapping = dict(_FLAT_KEYS)
    for field_name in TuningConfig.model_fields:
        mapping[f"tuning_{field_name}"] = ("tuning", field_name)
    return mapping


def _normalize_layer(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Bring one layer (defaults, YAML, env, CLI) into the sectioned shape.

    Sectioned blocks (``tuning: {video_timeout_ms: ...}``) pass through;
    flat keys (``tuning_video_timeout_ms``) are folded into their section.
    When a layer carries both, the flat key wins.
    """
    out: dict[str, Any] = {}

    for section in _SECTION_KEYS:
        if section in data and isinstance(data[section], Mapping):
            out[section] = dict(data[section])

    for key in ("app_name", "environment"):
        if key in data:
            out[key] = data[key]

    for flat_key, (section, section_key) in _flat_map().items():
        if flat_key in data:
            out.setdefault(section, {})
            out[section][section_key] = data[flat_key]

    return out


def _check_tuning_keys(layer: Mapping[str, Any], source: Path) -> None:
    """Reject misspelled tuning keys instead of silently using defaults."""
    tuning = layer.get("tuning") or {}
    unknown = sorted(set(tuning) - set(TuningConfig.model_fields))
    if unknown:
        raise ValueError(
            f"Unknown tuning option(s) in {source}: {', '.join(unknown)}"
        )


def _read_yaml_config(config_path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(
            f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> AppConfig:
    """
    Build the validated AppConfig from four layers, later layers winning:
    defaults < YAML file < GUIDETUNER_* env vars < CLI overrides.

    A ``.env`` file, when given, is loaded into the environment first and
    never overrides variables that are already set.  Nothing is written
    to disk.
    """
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    merged = _normalize_layer(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(config_path)
        yaml_layer = _normalize_layer(_read_yaml_config(config_path))
        _check_tuning_keys(yaml_layer, config_path)
        _deep_merge(merged, yaml_layer)

    _deep_merge(merged, _normalize_layer(EnvOverrides().to_update_dict()))
    _deep_merge(merged, _normalize_layer(cli_overrides or {}))

    return AppConfig.model_validate(merged)
