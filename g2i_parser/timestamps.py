"""Millisecond timestamp conversion with collision-avoiding jitter."""

from __future__ import annotations

import random

from g2i_common.errors import RecordParseError

NANOS_PER_MILLI = 1_000_000

_rng = random.Random()


def parse_millis(raw: str) -> int:
    """Parse a decimal epoch-millisecond value."""
    value = raw.strip()
    if not value.isdigit():
        raise RecordParseError(
            f"Failed to parse timestamp as integer: {raw!r}",
            context={"value": raw},
        )
    return int(value)


def jittered_nanos(millis: int, rng: random.Random | None = None) -> int:
    """Convert milliseconds to nanoseconds plus a random sub-millisecond offset.

    Two events logged within the same millisecond would otherwise share a
    series key in the backend and overwrite each other.
    """
    source = rng or _rng
    return millis * NANOS_PER_MILLI + source.randrange(NANOS_PER_MILLI)

