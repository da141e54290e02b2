"""Tests for InfluxConfig env fallbacks and validation."""

import pytest
from pydantic import ValidationError

from g2i_influx.config import InfluxConfig


pytestmark = pytest.mark.unit_influx


def test_env_fallbacks_apply_when_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("G2I_INFLUX_URL", "http://env-influx:8086")
    monkeypatch.setenv("G2I_INFLUX_BATCH_SIZE", "250")

    cfg = InfluxConfig.model_validate({})

    assert cfg.url == "http://env-influx:8086"
    assert cfg.batch_size == 250


def test_env_fallbacks_do_not_override_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("G2I_INFLUX_DATABASE", "from-env")

    cfg = InfluxConfig(database="from-config")

    assert cfg.database == "from-config"


def test_url_must_be_http() -> None:
    with pytest.raises(ValidationError):
        InfluxConfig(url="influx:8086")


def test_flush_interval_in_seconds() -> None:
    assert InfluxConfig(flush_interval_ms=1500).flush_interval == 1.5
