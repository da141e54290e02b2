"""InfluxDB line protocol encoding."""

from __future__ import annotations

from typing import Any, Mapping, Protocol


class PointLike(Protocol):
    measurement: str

    @property
    def tags(self) -> Mapping[str, str]:
        ...

    @property
    def fields(self) -> Mapping[str, Any]:
        ...

    @property
    def timestamp_ns(self) -> int:
        ...


_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ ", "\n": r"\n"})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ ", "\n": r"\n"})


def escape_measurement(value: str) -> str:
    return value.translate(_MEASUREMENT_ESCAPES)


def escape_key(value: str) -> str:
    """Escape a tag key, tag value or field key."""
    return value.translate(_KEY_ESCAPES)


def format_field_value(value: Any) -> str:
    # bool before int: bool is an int subclass.
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{text}"'


def encode_point(
    measurement: str,
    tags: Mapping[str, str],
    fields: Mapping[str, Any],
    timestamp_ns: int,
) -> str:
    """Encode a single point.

    Empty tag values and None fields are omitted; at least one field must
    remain.
    """
    field_parts = [
        f"{escape_key(key)}={format_field_value(value)}"
        for key, value in sorted(fields.items())
        if value is not None
    ]
    if not field_parts:
        raise ValueError(f"Point for {measurement!r} has no fields")
    tag_parts = [
        f"{escape_key(key)}={escape_key(str(value))}"
        for key, value in sorted(tags.items())
        if value not in (None, "")
    ]
    head = escape_measurement(measurement)
    if tag_parts:
        head = ",".join([head, *tag_parts])
    return f"{head} {','.join(field_parts)} {timestamp_ns}"


def encode_event(event: PointLike) -> str:
    return encode_point(event.measurement, event.tags, event.fields, event.timestamp_ns)

