"""InfluxDB connection and batching settings."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator

from g2i_common.config.env import (
    apply_env_fallbacks,
    parse_float_env,
    parse_int_env,
    parse_str_env,
)

_ENV_FALLBACKS = {
    "url": ("G2I_INFLUX_URL", parse_str_env),
    "database": ("G2I_INFLUX_DATABASE", parse_str_env),
    "username": ("G2I_INFLUX_USERNAME", parse_str_env),
    "password": ("G2I_INFLUX_PASSWORD", parse_str_env),
    "retention_policy": ("G2I_INFLUX_RETENTION_POLICY", parse_str_env),
    "batch_size": ("G2I_INFLUX_BATCH_SIZE", parse_int_env),
    "flush_interval_ms": ("G2I_INFLUX_FLUSH_INTERVAL_MS", parse_int_env),
    "timeout_seconds": ("G2I_INFLUX_TIMEOUT_SECONDS", parse_float_env),
    "max_retries": ("G2I_INFLUX_MAX_RETRIES", parse_int_env),
    "max_queue_size": ("G2I_INFLUX_MAX_QUEUE_SIZE", parse_int_env),
    "backoff_base": ("G2I_INFLUX_BACKOFF_BASE", parse_float_env),
    "backoff_factor": ("G2I_INFLUX_BACKOFF_FACTOR", parse_float_env),
}


class InfluxConfig(BaseModel):
    """Where and how metric points are written."""

    url: str = Field(default="http://localhost:8086", description="InfluxDB base URL")
    database: str = Field(default="gatling", min_length=1, description="Target database")
    username: str | None = Field(default=None, description="Basic auth user")
    password: str | None = Field(default=None, description="Basic auth password")
    retention_policy: str | None = Field(
        default=None, description="Retention policy for written points"
    )
    batch_size: int = Field(default=500, ge=1, description="Points per write request")
    flush_interval_ms: int = Field(
        default=1000, ge=100, description="Maximum delay before a partial batch is sent"
    )
    timeout_seconds: float = Field(default=5.0, gt=0, description="HTTP timeout")
    max_retries: int = Field(default=3, ge=0, description="Retries per batch")
    max_queue_size: int = Field(
        default=100_000, ge=1, description="Points buffered before new ones are dropped"
    )
    backoff_base: float = Field(default=0.5, ge=0, description="First retry delay")
    backoff_factor: float = Field(default=2.0, ge=1, description="Retry delay multiplier")

    model_config = {"extra": "ignore"}

    @model_validator(mode="before")
    @classmethod
    def _apply_env_fallbacks(cls, values: Any) -> Any:
        """Apply env vars as fallbacks for missing config values.

        Priority: config file > environment variables > defaults.
        """
        if isinstance(values, cls):
            return values
        if values is None:
            values = {}
        if not isinstance(values, dict):
            return values
        return apply_env_fallbacks(dict(values), _ENV_FALLBACKS)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        trimmed = value.strip().rstrip("/")
        parsed = urlparse(trimmed)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(f"InfluxDB url must be an http(s) URL, got: {value}")
        return trimmed

    @property
    def flush_interval(self) -> float:
        return self.flush_interval_ms / 1000.0
