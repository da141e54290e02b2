"""Parser settings model."""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from g2i_common.config.env import (
    apply_env_fallbacks,
    parse_float_env,
    parse_str_env,
)

from .models import RunIdentity

DEFAULT_STOP_TIMEOUT_SECONDS = 120.0

_ENV_FALLBACKS = {
    "target_dir": ("G2I_TARGET_DIR", parse_str_env),
    "system_under_test": ("G2I_SYSTEM_UNDER_TEST", parse_str_env),
    "test_environment": ("G2I_TEST_ENVIRONMENT", parse_str_env),
    "stop_timeout": ("G2I_STOP_TIMEOUT", parse_float_env),
    "node_name": ("G2I_NODE_NAME", parse_str_env),
}


class ParserSettings(BaseModel):
    """Settings injected into the pipeline before it starts."""

    target_dir: Path = Field(
        default=Path("."), description="Directory the results folder appears in"
    )
    system_under_test: str = Field(
        default="", description="Label of the system being load tested"
    )
    test_environment: str = Field(
        default="", description="Label of the environment the test runs in"
    )
    stop_timeout: float = Field(
        default=DEFAULT_STOP_TIMEOUT_SECONDS,
        gt=0,
        description="Seconds without new log lines before the run is considered over",
    )
    node_name: str = Field(
        default_factory=lambda: socket.gethostname(), description="Host name tag"
    )

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _apply_env_fallbacks(cls, values: Any) -> Any:
        """Apply env vars as fallbacks for missing config values.

        Priority: explicit values > environment variables > defaults.
        """
        if isinstance(values, cls):
            return values
        if values is None:
            values = {}
        if not isinstance(values, dict):
            return values
        return apply_env_fallbacks(dict(values), _ENV_FALLBACKS)

    @field_validator("node_name")
    @classmethod
    def _validate_node_name(cls, value: str) -> str:
        return value.strip() or socket.gethostname()

    def run_identity(self, start_time: float) -> RunIdentity:
        return RunIdentity(
            system_under_test=self.system_under_test,
            test_environment=self.test_environment,
            node_name=self.node_name,
            start_time=start_time,
        )
