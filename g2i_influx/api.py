"""Public API surface for g2i_influx."""

from g2i_influx.config import InfluxConfig
from g2i_influx.line_protocol import encode_event, encode_point
from g2i_influx.sink import InfluxSink, InfluxWriter, build_write_url

__all__ = [
    "InfluxConfig",
    "InfluxSink",
    "InfluxWriter",
    "build_write_url",
    "encode_event",
    "encode_point",
]
