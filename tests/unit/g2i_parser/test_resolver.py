"""Tests for results directory and log file discovery."""

import os
import threading
import time
from pathlib import Path

import pytest

from g2i_common.errors import DiscoveryError
from g2i_common.stop_token import StopToken
from g2i_parser.resolver import (
    SIMULATION_LOG_FILE_NAME,
    START_TIME_SLACK_SECONDS,
    LookupStatus,
    await_log_file,
    await_results_directory,
    await_target_directory,
    find_results_directory,
    is_results_dir_name,
    resolve_results,
)


pytestmark = pytest.mark.unit_parser

FAST = 0.02


def _set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def _make_log(results_dir: Path, mode: int = 0o644) -> Path:
    log_file = results_dir / SIMULATION_LOG_FILE_NAME
    log_file.write_text("")
    log_file.chmod(mode)
    return log_file


@pytest.fixture
def token() -> StopToken:
    return StopToken(enable_signals=False)


class TestResultsDirName:
    @pytest.mark.parametrize(
        "name",
        ["basicsimulation-20240101120000123", "a-b-c-12345678901234567"],
    )
    def test_matching_names(self, name: str) -> None:
        assert is_results_dir_name(name)

    @pytest.mark.parametrize(
        "name",
        [
            "basicsimulation-2024010112000012",
            "basicsimulation-202401011200001234",
            "-20240101120000123",
            "basicsimulation_20240101120000123",
            "basicsimulation-2024010112000012x",
        ],
    )
    def test_non_matching_names(self, name: str) -> None:
        assert not is_results_dir_name(name)


class TestAwaitTargetDirectory:
    def test_existing_directory_is_found(self, tmp_path: Path, token: StopToken) -> None:
        result = await_target_directory(tmp_path, token, retry_interval=FAST)

        assert result.status is LookupStatus.FOUND
        assert result.path == tmp_path.resolve()

    def test_file_instead_of_directory_is_fatal(
        self, tmp_path: Path, token: StopToken
    ) -> None:
        target = tmp_path / "target"
        target.write_text("not a dir")

        with pytest.raises(DiscoveryError, match="found a file"):
            await_target_directory(target, token, retry_interval=FAST)

    def test_stop_while_waiting_returns_stopped(
        self, tmp_path: Path, token: StopToken
    ) -> None:
        timer = threading.Timer(0.1, token.request_stop)
        timer.start()

        result = await_target_directory(tmp_path / "missing", token, retry_interval=FAST)

        timer.join()
        assert result.status is LookupStatus.STOPPED
        assert result.path is None

    def test_directory_created_later_is_found_within_one_retry(
        self, tmp_path: Path, token: StopToken
    ) -> None:
        target = tmp_path / "later"
        retry = 0.2
        created_at: list[float] = []

        def _create() -> None:
            target.mkdir()
            created_at.append(time.monotonic())

        timer = threading.Timer(0.3, _create)
        timer.start()

        result = await_target_directory(target, token, retry_interval=retry)
        found_at = time.monotonic()

        timer.join()
        assert result.found
        assert found_at - created_at[0] <= retry + 0.5


class TestFindResultsDirectory:
    def test_non_matching_names_are_never_selected(self, tmp_path: Path) -> None:
        (tmp_path / "results").mkdir()
        (tmp_path / "simulation-123").mkdir()

        assert find_results_directory(tmp_path, time.time()) is None

    def test_old_directory_is_ignored_and_new_one_selected(self, tmp_path: Path) -> None:
        start = time.time()
        old = tmp_path / "basicsimulation-20200101000000000"
        new = tmp_path / "basicsimulation-20990101000000000"
        old.mkdir()
        new.mkdir()
        _set_mtime(old, start - START_TIME_SLACK_SECONDS - 3600)

        assert find_results_directory(tmp_path, start) == new

    def test_directory_within_slack_is_selected(self, tmp_path: Path) -> None:
        start = time.time()
        recent = tmp_path / "basicsimulation-20240101000000000"
        recent.mkdir()
        _set_mtime(recent, start - START_TIME_SLACK_SECONDS + 5)

        assert find_results_directory(tmp_path, start) == recent

    def test_first_match_in_walk_order_wins(self, tmp_path: Path) -> None:
        start = time.time()
        first = tmp_path / "a-20240101000000000"
        second = tmp_path / "b-20240101000000000"
        second.mkdir()
        first.mkdir()

        assert find_results_directory(tmp_path, start) == first

    def test_nested_match_precedes_later_sibling(self, tmp_path: Path) -> None:
        start = time.time()
        nested = tmp_path / "a" / "sim-20240101000000123"
        nested.mkdir(parents=True)
        (tmp_path / "b-20240101000000456").mkdir()

        assert find_results_directory(tmp_path, start) == nested

    def test_nested_directory_is_found(self, tmp_path: Path) -> None:
        nested = tmp_path / "results" / "sim-20240101000000000"
        nested.mkdir(parents=True)

        assert find_results_directory(tmp_path, time.time()) == nested

    def test_repeated_lookup_is_stable(self, tmp_path: Path) -> None:
        start = time.time()
        (tmp_path / "x-20240101000000000").mkdir()
        (tmp_path / "y-20240101000000000").mkdir()

        first = find_results_directory(tmp_path, start)
        assert find_results_directory(tmp_path, start) == first


class TestAwaitResultsDirectory:
    def test_waits_until_new_directory_appears(
        self, tmp_path: Path, token: StopToken
    ) -> None:
        start = time.time()
        old = tmp_path / "sim-20200101000000000"
        old.mkdir()
        _set_mtime(old, start - 7200)
        new = tmp_path / "sim-20990101000000000"
        timer = threading.Timer(0.1, new.mkdir)
        timer.start()

        result = await_results_directory(tmp_path, start, token, retry_interval=FAST)

        timer.join()
        assert result.path == new

    def test_stop_returns_stopped(self, tmp_path: Path, token: StopToken) -> None:
        token.request_stop()

        result = await_results_directory(tmp_path, time.time(), token)

        assert result.status is LookupStatus.STOPPED


class TestAwaitLogFile:
    def test_readable_log_is_found(self, tmp_path: Path, token: StopToken) -> None:
        log_file = _make_log(tmp_path)

        result = await_log_file(tmp_path, token, retry_interval=FAST)

        assert result.path == log_file.resolve()

    def test_directory_named_like_log_is_fatal(
        self, tmp_path: Path, token: StopToken
    ) -> None:
        (tmp_path / SIMULATION_LOG_FILE_NAME).mkdir()

        with pytest.raises(DiscoveryError):
            await_log_file(tmp_path, token, retry_interval=FAST)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_private_log_is_fatal(self, tmp_path: Path, token: StopToken) -> None:
        _make_log(tmp_path, mode=0o600)

        with pytest.raises(DiscoveryError):
            await_log_file(tmp_path, token, retry_interval=FAST)

    def test_log_created_later_is_found(self, tmp_path: Path, token: StopToken) -> None:
        timer = threading.Timer(0.1, _make_log, args=(tmp_path,))
        timer.start()

        result = await_log_file(tmp_path, token, retry_interval=FAST)

        timer.join()
        assert result.found


class TestResolveResults:
    def test_full_sequence_fills_location(self, tmp_path: Path, token: StopToken) -> None:
        results_dir = tmp_path / "sim-20240101000000000"
        results_dir.mkdir()
        log_file = _make_log(results_dir)

        location = resolve_results(tmp_path, time.time(), token, retry_interval=FAST)

        assert location is not None
        assert location.target_dir == tmp_path.resolve()
        assert location.results_dir == results_dir.resolve()
        assert location.log_file == log_file.resolve()

    def test_stop_during_lookup_returns_none(self, tmp_path: Path, token: StopToken) -> None:
        timer = threading.Timer(0.1, token.request_stop)
        timer.start()

        location = resolve_results(tmp_path, time.time(), token, retry_interval=FAST)

        timer.join()
        assert location is None
