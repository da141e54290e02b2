"""Merge config file sections and command line overrides into settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from g2i_common.errors import ConfigurationError
from g2i_influx.config import InfluxConfig
from g2i_parser.config import ParserSettings


def _load_config_data(config_path: Path) -> dict[str, Any]:
    """Load the ``parser`` and ``influx`` sections of a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            context={"path": config_path},
        )
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in {config_path}: {exc}", cause=exc
        ) from exc
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping at the top level.")
    for section in ("parser", "influx"):
        if not isinstance(data.get(section) or {}, dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping.")
    return data


def _overlay(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


def load_settings(
    config_path: Path | None,
    parser_overrides: Mapping[str, Any],
    influx_overrides: Mapping[str, Any],
) -> tuple[ParserSettings, InfluxConfig]:
    """Build validated settings.

    Priority: command line > config file > environment variables > defaults.
    """
    data = _load_config_data(config_path) if config_path else {}
    parser_values = _overlay(data.get("parser") or {}, parser_overrides)
    influx_values = _overlay(data.get("influx") or {}, influx_overrides)
    try:
        return (
            ParserSettings.model_validate(parser_values),
            InfluxConfig.model_validate(influx_values),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}", cause=exc) from exc
