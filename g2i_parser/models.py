"""Data model for the simulation log pipeline."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar


class LogFormatVersion(str, Enum):
    """Column layout generation of the simulation log."""

    UNKNOWN = "unknown"
    LEGACY = "legacy"
    CURRENT = "current"


class RecordKind(str, Enum):
    """Structural category of a simulation log line."""

    RUN = "RUN"
    USER = "USER"
    REQUEST = "REQUEST"
    GROUP = "GROUP"
    ERROR = "ERROR"


@dataclass(frozen=True)
class RunIdentity:
    """Tags attached to every metric event of this process."""

    system_under_test: str
    test_environment: str
    node_name: str = field(default_factory=socket.gethostname)
    start_time: float = field(default_factory=time.time)
    simulation: str = ""

    def with_simulation(self, simulation: str) -> "RunIdentity":
        return replace(self, simulation=simulation)

    def tags(self) -> dict[str, str]:
        return {
            "nodeName": self.node_name,
            "simulation": self.simulation,
            "systemUnderTest": self.system_under_test,
            "testEnvironment": self.test_environment,
        }


@dataclass
class ResultsLocation:
    """Paths filled in, in order, by the directory resolver."""

    target_dir: Path
    results_dir: Path | None = None
    log_file: Path | None = None


@dataclass
class ParserState:
    """Mutable parsing state shared by the record parsers.

    Written only by the run-header parser and read by every other parser on
    the same thread, so no locking is needed.
    """

    run: RunIdentity
    format_version: LogFormatVersion = LogFormatVersion.UNKNOWN
    gatling_version: str | None = None
    user_scenarios: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MetricEvent:
    """Base class of every event handed to the metrics sink."""

    kind: ClassVar[RecordKind]
    measurement: ClassVar[str]

    run: RunIdentity
    timestamp_ns: int

    @property
    def tags(self) -> dict[str, str]:
        tags = self.run.tags()
        tags.update(self._own_tags())
        return tags

    @property
    def fields(self) -> dict[str, Any]:
        return self._own_fields()

    def _own_tags(self) -> dict[str, str]:
        return {}

    def _own_fields(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True)
class RunEvent(MetricEvent):
    kind: ClassVar[RecordKind] = RecordKind.RUN
    measurement: ClassVar[str] = "tests"

    description: str = ""
    gatling_version: str = ""

    def _own_tags(self) -> dict[str, str]:
        return {"action": "start"}

    def _own_fields(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "gatlingVersion": self.gatling_version,
        }


@dataclass(frozen=True)
class UserEvent(MetricEvent):
    kind: ClassVar[RecordKind] = RecordKind.USER
    measurement: ClassVar[str] = "users"

    scenario: str = ""
    phase: str = ""
    user_id: str | None = None

    def _own_tags(self) -> dict[str, str]:
        return {"scenario": self.scenario, "phase": self.phase}

    def _own_fields(self) -> dict[str, Any]:
        # START counts +1 active user, END counts -1.
        delta = 1 if self.phase == "START" else -1
        return {"userId": self.user_id, "delta": delta}


@dataclass(frozen=True)
class RequestEvent(MetricEvent):
    kind: ClassVar[RecordKind] = RecordKind.REQUEST
    measurement: ClassVar[str] = "requests"

    name: str = ""
    groups: str = ""
    start_ms: int = 0
    end_ms: int = 0
    status: str = ""
    message: str | None = None
    scenario: str | None = None
    user_id: str | None = None

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def _own_tags(self) -> dict[str, str]:
        return {
            "name": self.name,
            "groups": self.groups,
            "status": self.status,
            "scenario": self.scenario or "",
        }

    def _own_fields(self) -> dict[str, Any]:
        return {
            "duration": self.duration_ms,
            "errorMessage": self.message,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class GroupEvent(MetricEvent):
    kind: ClassVar[RecordKind] = RecordKind.GROUP
    measurement: ClassVar[str] = "groups"

    groups: str = ""
    start_ms: int = 0
    end_ms: int = 0
    cumulated_ms: int = 0
    status: str = ""
    user_id: str | None = None

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms

    def _own_tags(self) -> dict[str, str]:
        return {"groups": self.groups, "status": self.status}

    def _own_fields(self) -> dict[str, Any]:
        return {
            "duration": self.duration_ms,
            "cumulatedResponseTime": self.cumulated_ms,
            "userId": self.user_id,
        }


@dataclass(frozen=True)
class ErrorEvent(MetricEvent):
    kind: ClassVar[RecordKind] = RecordKind.ERROR
    measurement: ClassVar[str] = "errors"

    message: str = ""

    def _own_fields(self) -> dict[str, Any]:
        return {"errorMessage": self.message}
