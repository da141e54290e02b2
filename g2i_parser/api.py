"""Public API surface for g2i_parser."""

from g2i_parser.completion import CompletionSignal
from g2i_parser.config import ParserSettings
from g2i_parser.models import (
    ErrorEvent,
    GroupEvent,
    LogFormatVersion,
    MetricEvent,
    ParserState,
    RecordKind,
    RequestEvent,
    ResultsLocation,
    RunEvent,
    RunIdentity,
    UserEvent,
)
from g2i_parser.pipeline import (
    MetricsStage,
    PipelineOrchestrator,
    PipelineResult,
    PipelineState,
    RunOutcome,
    run_main,
)
from g2i_parser.records import RecordProcessor, classify_line
from g2i_parser.resolver import (
    LookupResult,
    LookupStatus,
    await_log_file,
    await_results_directory,
    await_target_directory,
    resolve_results,
)
from g2i_parser.tailer import LogTailer, TailOutcome

__all__ = [
    "CompletionSignal",
    "ErrorEvent",
    "GroupEvent",
    "LogFormatVersion",
    "LogTailer",
    "LookupResult",
    "LookupStatus",
    "MetricEvent",
    "MetricsStage",
    "ParserSettings",
    "ParserState",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineState",
    "RecordKind",
    "RecordProcessor",
    "RequestEvent",
    "ResultsLocation",
    "RunEvent",
    "RunIdentity",
    "RunOutcome",
    "TailOutcome",
    "UserEvent",
    "await_log_file",
    "await_results_directory",
    "await_target_directory",
    "classify_line",
    "resolve_results",
    "run_main",
]
