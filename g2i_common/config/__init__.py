"""Configuration helpers for g2i_common."""

from .env import (
    apply_env_fallbacks,
    parse_bool_env,
    parse_float_env,
    parse_int_env,
    parse_str_env,
)

__all__ = [
    "apply_env_fallbacks",
    "parse_bool_env",
    "parse_float_env",
    "parse_int_env",
    "parse_str_env",
]
