from pathlib import Path

import pytest

from g2i_common.errors import (
    DiscoveryError,
    FatalRecordError,
    G2IError,
    RecordParseError,
)


pytestmark = pytest.mark.unit_common


def test_error_context_is_json_friendly() -> None:
    err = DiscoveryError("boom", context={"path": Path("/tmp/x"), "modes": (1, 2)})

    assert err.to_dict() == {
        "type": "DiscoveryError",
        "message": "boom",
        "context": {"path": "/tmp/x", "modes": [1, 2]},
    }


def test_cause_is_chained() -> None:
    cause = ValueError("bad")
    err = RecordParseError("wrapped", cause=cause)

    assert isinstance(err, G2IError)
    assert err.__cause__ is cause


def test_fatal_record_error_is_a_record_parse_error() -> None:
    assert issubclass(FatalRecordError, RecordParseError)
