"""Environment variable parsing utilities."""

from __future__ import annotations

import os
from typing import Any, Callable, Mapping, MutableMapping

EnvParser = Callable[[str | None], Any]


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_int_env(value: str | None) -> int | None:
    """Parse an integer from an environment variable string.

    Returns None if value is None or cannot be parsed.
    """
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_float_env(value: str | None) -> float | None:
    """Parse a float from an environment variable string.

    Returns None if value is None or cannot be parsed.
    """
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_str_env(value: str | None) -> str | None:
    """Return the stripped value, or None when unset or blank."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def apply_env_fallbacks(
    values: MutableMapping[str, Any],
    fallbacks: Mapping[str, tuple[str, EnvParser]],
) -> MutableMapping[str, Any]:
    """Fill missing keys from environment variables.

    ``fallbacks`` maps a config key to ``(ENV_VAR, parser)``. Keys already
    present with a non-None value are left untouched.
    """
    for key, (env_var, parser) in fallbacks.items():
        if values.get(key) is not None:
            continue
        env_value = parser(os.environ.get(env_var))
        if env_value is not None:
            values[key] = env_value
    return values
