"""Classification and parsing of simulation log lines into metric events."""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from typing import Callable, Pattern

from g2i_common.errors import FatalRecordError, RecordParseError

from .models import (
    ErrorEvent,
    GroupEvent,
    LogFormatVersion,
    MetricEvent,
    ParserState,
    RecordKind,
    RequestEvent,
    RunEvent,
    UserEvent,
)
from .timestamps import jittered_nanos, parse_millis

logger = logging.getLogger(__name__)

TAB = "\t"

_LINE_PATTERNS: tuple[tuple[RecordKind, Pattern[str]], ...] = (
    (RecordKind.REQUEST, re.compile(r"^REQUEST\s")),
    (RecordKind.GROUP, re.compile(r"^GROUP\s")),
    (RecordKind.USER, re.compile(r"^USER\s")),
    (RecordKind.ERROR, re.compile(r"^ERROR\s")),
    (RecordKind.RUN, re.compile(r"^RUN\s")),
)

_VERSION_TOKEN = re.compile(r"^\d+(?:\.\d+)+$")
CURRENT_FORMAT_SINCE = (3, 5, 0)


@dataclass(frozen=True)
class FieldLayout:
    """Column names after the record kind; the last ``optional`` may be absent."""

    names: tuple[str, ...]
    optional: int = 0

    @property
    def min_columns(self) -> int:
        return len(self.names) - self.optional

    def bind(self, kind: RecordKind, columns: list[str]) -> dict[str, str]:
        if not self.min_columns <= len(columns) <= len(self.names):
            raise RecordParseError(
                f"{kind.value} line contains unexpected amount of values",
                context={"expected": len(self.names), "actual": len(columns)},
            )
        values = dict(zip(self.names, columns))
        for name in self.names[len(columns):]:
            values[name] = ""
        return values


LAYOUTS: dict[tuple[RecordKind, LogFormatVersion], FieldLayout] = {
    (RecordKind.USER, LogFormatVersion.LEGACY): FieldLayout(
        ("scenario", "user_id", "phase", "start", "end")
    ),
    (RecordKind.USER, LogFormatVersion.CURRENT): FieldLayout(
        ("scenario", "phase", "timestamp")
    ),
    (RecordKind.REQUEST, LogFormatVersion.LEGACY): FieldLayout(
        ("user_id", "groups", "name", "start", "end", "status", "message"),
        optional=1,
    ),
    (RecordKind.REQUEST, LogFormatVersion.CURRENT): FieldLayout(
        ("groups", "name", "start", "end", "status", "message"),
        optional=1,
    ),
    (RecordKind.GROUP, LogFormatVersion.LEGACY): FieldLayout(
        ("user_id", "groups", "start", "end", "cumulated", "status")
    ),
    (RecordKind.GROUP, LogFormatVersion.CURRENT): FieldLayout(
        ("groups", "start", "end", "cumulated", "status")
    ),
}
ERROR_LAYOUT = FieldLayout(("message", "timestamp"))


def classify_line(line: str) -> RecordKind:
    """Return the record kind of ``line`` or raise RecordParseError."""
    for kind, pattern in _LINE_PATTERNS:
        if pattern.match(line):
            return kind
    raise RecordParseError(
        "Unknown line type encountered", context={"line": line[:80]}
    )


def split_columns(line: str) -> list[str]:
    """Split a raw line on tabs, dropping the record kind column."""
    return line.rstrip("\r\n").split(TAB)[1:]


def _version_tuple(token: str) -> tuple[int, ...]:
    return tuple(int(part) for part in token.split("."))


def format_from_version(token: str) -> LogFormatVersion:
    """Map the version token of a run header to a column layout.

    Tokens with major version 3 or later are Gatling releases; lower majors
    are log-format generation numbers.
    """
    if not _VERSION_TOKEN.match(token):
        raise RecordParseError(
            f"Unrecognised log format version {token!r}", context={"token": token}
        )
    version = _version_tuple(token)
    if version[0] >= 3:
        padded = version + (0,) * (3 - len(version))
        if padded >= CURRENT_FORMAT_SINCE:
            return LogFormatVersion.CURRENT
        return LogFormatVersion.LEGACY
    if version[0] >= 2:
        return LogFormatVersion.CURRENT
    return LogFormatVersion.LEGACY


def _require_status(value: str) -> str:
    status = value.strip()
    if status not in {"OK", "KO"}:
        raise RecordParseError(
            f"Unexpected status {value!r}", context={"status": value}
        )
    return status


def _require_phase(value: str) -> str:
    phase = value.strip()
    if phase not in {"START", "END"}:
        raise RecordParseError(
            f"Unexpected user phase {value!r}", context={"phase": value}
        )
    return phase


class RecordProcessor:
    """Turn complete log lines into events and forward them to the sink.

    Lines must be fed in file order from a single thread: the run header sets
    the format version that every later parser reads.
    """

    def __init__(
        self,
        state: ParserState,
        forward: Callable[[MetricEvent], None],
        rng: random.Random | None = None,
    ) -> None:
        self.state = state
        self._forward = forward
        self._rng = rng
        self._parsers: dict[RecordKind, Callable[[list[str]], MetricEvent]] = {
            RecordKind.RUN: self._parse_run,
            RecordKind.USER: self._parse_user,
            RecordKind.REQUEST: self._parse_request,
            RecordKind.GROUP: self._parse_group,
            RecordKind.ERROR: self._parse_error,
        }

    def process_line(self, line: str) -> MetricEvent:
        """Parse one line and forward the event.

        Raises FatalRecordError when the run header is unusable and
        RecordParseError for any other malformed line.
        """
        kind = classify_line(line)
        columns = split_columns(line)
        try:
            event = self._parsers[kind](columns)
        except RecordParseError as exc:
            if kind is RecordKind.RUN:
                raise FatalRecordError(
                    f"{exc}: further processing is futile",
                    context=exc.context,
                    cause=exc,
                ) from exc
            raise
        self._forward(event)
        return event

    def _layout(self, kind: RecordKind) -> FieldLayout:
        version = self.state.format_version
        if version is LogFormatVersion.UNKNOWN:
            raise RecordParseError(
                f"{kind.value} line encountered before the RUN header",
                context={"kind": kind.value},
            )
        return LAYOUTS[(kind, version)]

    def _nanos(self, millis: int) -> int:
        return jittered_nanos(millis, self._rng)

    def _parse_run(self, columns: list[str]) -> RunEvent:
        if len(columns) < 4:
            raise RecordParseError(
                "RUN line contains unexpected amount of values",
                context={"actual": len(columns)},
            )
        simulation = columns[0].strip()
        start_index = next(
            (i for i, value in enumerate(columns[1:], 1) if value.strip().isdigit()),
            None,
        )
        if start_index is None:
            raise RecordParseError("RUN line has no start timestamp")
        version_index = next(
            (
                i
                for i in range(len(columns) - 1, 0, -1)
                if _VERSION_TOKEN.match(columns[i].strip())
            ),
            None,
        )
        if version_index is None:
            raise RecordParseError("RUN line has no format version")

        version_token = columns[version_index].strip()
        format_version = format_from_version(version_token)
        start_ms = parse_millis(columns[start_index])
        description = ""
        if start_index + 1 < len(columns) and start_index + 1 != version_index:
            description = columns[start_index + 1].strip()

        self.state.format_version = format_version
        self.state.gatling_version = version_token
        self.state.run = self.state.run.with_simulation(simulation)
        logger.info(
            "Simulation %s started, log format %s (version %s)",
            simulation,
            format_version.value,
            version_token,
        )
        return RunEvent(
            run=self.state.run,
            timestamp_ns=self._nanos(start_ms),
            description=description,
            gatling_version=version_token,
        )

    def _parse_user(self, columns: list[str]) -> UserEvent:
        values = self._layout(RecordKind.USER).bind(RecordKind.USER, columns)
        phase = _require_phase(values["phase"])
        scenario = values["scenario"]
        user_id = values.get("user_id") or None
        if "timestamp" in values:
            millis = parse_millis(values["timestamp"])
        else:
            millis = parse_millis(values["start" if phase == "START" else "end"])

        if user_id is not None:
            if phase == "START":
                self.state.user_scenarios[user_id] = scenario
            else:
                self.state.user_scenarios.pop(user_id, None)

        return UserEvent(
            run=self.state.run,
            timestamp_ns=self._nanos(millis),
            scenario=scenario,
            phase=phase,
            user_id=user_id,
        )

    def _parse_request(self, columns: list[str]) -> RequestEvent:
        values = self._layout(RecordKind.REQUEST).bind(RecordKind.REQUEST, columns)
        start_ms = parse_millis(values["start"])
        end_ms = parse_millis(values["end"])
        user_id = values.get("user_id") or None
        message = values["message"].strip() or None
        return RequestEvent(
            run=self.state.run,
            timestamp_ns=self._nanos(end_ms),
            name=values["name"],
            groups=values["groups"],
            start_ms=start_ms,
            end_ms=end_ms,
            status=_require_status(values["status"]),
            message=message,
            scenario=self.state.user_scenarios.get(user_id) if user_id else None,
            user_id=user_id,
        )

    def _parse_group(self, columns: list[str]) -> GroupEvent:
        values = self._layout(RecordKind.GROUP).bind(RecordKind.GROUP, columns)
        start_ms = parse_millis(values["start"])
        end_ms = parse_millis(values["end"])
        return GroupEvent(
            run=self.state.run,
            timestamp_ns=self._nanos(end_ms),
            groups=values["groups"],
            start_ms=start_ms,
            end_ms=end_ms,
            cumulated_ms=parse_millis(values["cumulated"]),
            status=_require_status(values["status"]),
            user_id=values.get("user_id") or None,
        )

    def _parse_error(self, columns: list[str]) -> ErrorEvent:
        values = ERROR_LAYOUT.bind(RecordKind.ERROR, columns)
        return ErrorEvent(
            run=self.state.run,
            timestamp_ns=self._nanos(parse_millis(values["timestamp"])),
            message=values["message"].strip(),
        )
