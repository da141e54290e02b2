"""InfluxDB metrics sink for g2i."""

from g2i_influx.api import InfluxConfig, InfluxSink

__all__ = ["InfluxConfig", "InfluxSink"]
