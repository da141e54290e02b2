"""End-to-end tailing of a simulation log that is still being written."""

import os
import threading
import time
from pathlib import Path

import pytest

from g2i_common.stop_token import StopToken
from g2i_influx.config import InfluxConfig
from g2i_influx.sink import InfluxSink
from g2i_parser.models import RunIdentity
from g2i_parser.pipeline import RunOutcome, run_main


pytestmark = [pytest.mark.inter_generic, pytest.mark.slow]


class CapturingWriter:
    def __init__(self) -> None:
        self.lines: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, lines: list[str]) -> None:
        with self._lock:
            self.lines.extend(lines)

    def measurements(self) -> list[str]:
        with self._lock:
            return [line.split(",", 1)[0] for line in self.lines]


def _simulation_lines(now_ms: int) -> list[bytes]:
    return [
        f"RUN\tcomputerdatabase.BasicSimulation\tbasicsimulation\t{now_ms}\t \t3.9.5\n".encode(),
        f"USER\tBrowse\tSTART\t{now_ms + 10}\n".encode(),
        f"REQUEST\t\thome\t{now_ms + 20}\t{now_ms + 45}\tOK\t \n".encode(),
        b"NOT_A_RECORD\tbroken\n",
        f"REQUEST\t\tsearch\t{now_ms + 50}\t{now_ms + 90}\tKO\tstatus.find.is(200)\n".encode(),
        f"ERROR\tstatus.find.is(200), but actually found 500\t{now_ms + 90}\n".encode(),
        f"USER\tBrowse\tEND\t{now_ms + 100}\n".encode(),
    ]


def _start_gatling(target: Path, lines: list[bytes], hold: threading.Event | None = None):
    """Create the results folder late, then append lines in fragments."""

    def write() -> None:
        time.sleep(0.2)
        results = target / "basicsimulation-20261016120000123"
        results.mkdir()
        staging = target / "staging.log"
        with staging.open("wb") as handle:
            os.chmod(staging, 0o644)
            os.replace(staging, results / "simulation.log")
            for line in lines:
                middle = len(line) // 2
                handle.write(line[:middle])
                handle.flush()
                time.sleep(0.03)
                handle.write(line[middle:])
                handle.flush()
                time.sleep(0.03)
            if hold is not None:
                hold.wait(10)

    thread = threading.Thread(target=write, daemon=True)
    thread.start()
    return thread


def _sink(writer: CapturingWriter) -> InfluxSink:
    return InfluxSink(InfluxConfig(batch_size=2, flush_interval_ms=100), writer)


def test_streams_live_log_until_idle(tmp_path: Path) -> None:
    start = time.time()
    writer = CapturingWriter()
    sink = _sink(writer)
    gatling = _start_gatling(tmp_path, _simulation_lines(int(start * 1000)))
    run = RunIdentity(
        system_under_test="shop", test_environment="qa", node_name="n1", start_time=start
    )

    with StopToken(enable_signals=False) as stop:
        outcome = run_main(
            tmp_path,
            run,
            sink,
            stop,
            idle_timeout=0.6,
            retry_interval=0.05,
            poll_interval=0.02,
        )
    gatling.join(5)

    assert outcome is RunOutcome.COMPLETED
    assert writer.measurements() == [
        "tests",
        "users",
        "requests",
        "requests",
        "errors",
        "users",
    ]
    assert all("simulation=computerdatabase.BasicSimulation" in line for line in writer.lines)
    assert all("systemUnderTest=shop" in line for line in writer.lines)
    assert 'errorMessage="status.find.is(200)"' in writer.lines[3]
    assert sink.written["requests"] == 2
    assert sink.dropped == 0


def test_stop_request_drains_what_was_read(tmp_path: Path) -> None:
    start = time.time()
    writer = CapturingWriter()
    sink = _sink(writer)
    hold = threading.Event()
    lines = _simulation_lines(int(start * 1000))[:3]
    gatling = _start_gatling(tmp_path, lines, hold)
    run = RunIdentity(
        system_under_test="shop", test_environment="qa", node_name="n1", start_time=start
    )
    stop = StopToken(enable_signals=False)

    def stop_when_read() -> None:
        deadline = time.monotonic() + 10
        while time.monotonic() < deadline:
            if sink.written["requests"] == 1:
                break
            time.sleep(0.02)
        stop.request_stop()

    stopper = threading.Thread(target=stop_when_read, daemon=True)
    stopper.start()
    outcome = run_main(
        tmp_path,
        run,
        sink,
        stop,
        idle_timeout=3600,
        retry_interval=0.05,
        poll_interval=0.02,
    )
    hold.set()
    stopper.join(5)
    gatling.join(5)

    assert outcome is RunOutcome.STOPPED
    assert writer.measurements() == ["tests", "users", "requests"]


def test_stop_before_results_appear(tmp_path: Path) -> None:
    writer = CapturingWriter()
    stop = StopToken(enable_signals=False)
    timer = threading.Timer(0.2, stop.request_stop)
    timer.start()

    outcome = run_main(
        tmp_path / "never-created",
        RunIdentity(system_under_test="", test_environment="", node_name="n1"),
        _sink(writer),
        stop,
        idle_timeout=1.0,
        retry_interval=0.05,
    )
    timer.join()

    assert outcome is RunOutcome.STOPPED
    assert writer.lines == []
