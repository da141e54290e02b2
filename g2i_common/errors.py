"""Shared error taxonomy for g2i."""

from __future__ import annotations

from typing import Any, Mapping


def _normalize_context_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return normalize_context(value)
    if isinstance(value, (list, tuple)):
        return [_normalize_context_value(item) for item in value]
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def normalize_context(context: Mapping[str, Any]) -> dict[str, Any]:
    """Return a JSON-friendly copy of an error context mapping."""
    return {key: _normalize_context_value(val) for key, val in context.items()}


class G2IError(Exception):
    """Base error type for typed failure handling."""

    def __init__(
        self,
        message: str,
        *,
        context: Mapping[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.context = normalize_context(context or {})
        if cause is not None:
            self.__cause__ = cause

    @property
    def error_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": str(self), "context": self.context}


class ConfigurationError(G2IError):
    """Failure due to invalid configuration."""


class DiscoveryError(G2IError):
    """Unrecoverable failure while locating the results directory or log file."""


class RecordParseError(G2IError):
    """Malformed or unknown simulation log line; the record is skipped."""


class FatalRecordError(RecordParseError):
    """Parse failure that makes every later record meaningless (run header)."""


class MetricsTransportError(G2IError):
    """Failure delivering points to the metrics backend."""



class MetricsRejectedError(MetricsTransportError):
    """The backend refused a batch (HTTP 4xx); retrying cannot help."""
