"""Public API surface for g2i_common."""

from g2i_common.config.env import (
    apply_env_fallbacks,
    parse_bool_env,
    parse_float_env,
    parse_int_env,
    parse_str_env,
)
from g2i_common.errors import (
    ConfigurationError,
    DiscoveryError,
    FatalRecordError,
    G2IError,
    MetricsRejectedError,
    MetricsTransportError,
    RecordParseError,
)
from g2i_common.logs.core import configure_logging
from g2i_common.stop_token import StopToken

__all__ = [
    "ConfigurationError",
    "DiscoveryError",
    "FatalRecordError",
    "G2IError",
    "MetricsRejectedError",
    "MetricsTransportError",
    "RecordParseError",
    "StopToken",
    "apply_env_fallbacks",
    "configure_logging",
    "parse_bool_env",
    "parse_float_env",
    "parse_int_env",
    "parse_str_env",
]
