"""Two-stage pipeline: log tailer feeding the metrics transmission stage.

Shutdown always drains the tailer before the sink is told to stop, so no event
is produced after the sink stopped accepting work and the process never exits
while the sink is still flushing.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from g2i_common.errors import DiscoveryError
from g2i_common.stop_token import StopToken

from .completion import CompletionSignal
from .models import MetricEvent, ParserState, RunIdentity
from .records import RecordProcessor
from .resolver import RETRY_INTERVAL_SECONDS, resolve_results
from .tailer import POLL_INTERVAL_SECONDS, LogTailer, TailOutcome

logger = logging.getLogger(__name__)


class MetricsStage(Protocol):
    """Boundary of the metrics transmission stage."""

    def submit(self, event: MetricEvent) -> None:
        ...

    def run(self, stop_token: StopToken) -> None:
        ...


class PipelineState(str, Enum):
    RUNNING = "running"
    DRAINING_TAILER = "draining_tailer"
    DRAINING_SINK = "draining_sink"
    STOPPED = "stopped"


class RunOutcome(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        return 1 if self is RunOutcome.FAILED else 0


_TAIL_TO_RUN = {
    TailOutcome.IDLE_TIMEOUT: RunOutcome.COMPLETED,
    TailOutcome.STOPPED: RunOutcome.STOPPED,
    TailOutcome.FAILED: RunOutcome.FAILED,
}


@dataclass
class PipelineResult:
    tail_outcome: TailOutcome
    states: list[PipelineState] = field(default_factory=list)
    lines_read: int = 0
    lines_skipped: int = 0

    @property
    def outcome(self) -> RunOutcome:
        return _TAIL_TO_RUN[self.tail_outcome]


class PipelineOrchestrator:
    """Run the tailer and sink as separate threads and stop them in order."""

    def __init__(
        self,
        log_file: Path,
        run: RunIdentity,
        sink: MetricsStage,
        global_stop: StopToken,
        *,
        idle_timeout: float,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        wait_interval: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        self._log_file = log_file
        self._sink = sink
        self._global_stop = global_stop
        self._idle_timeout = idle_timeout
        self._poll_interval = poll_interval
        self._wait_interval = wait_interval
        self.state = ParserState(run=run)
        self._processor = RecordProcessor(self.state, sink.submit, rng=rng)
        self.tail_token = StopToken(enable_signals=False, name="tailer")
        self.sink_token = StopToken(enable_signals=False, name="sink")
        self._completion: CompletionSignal[TailOutcome] = CompletionSignal()
        self._tailer: LogTailer | None = None
        self._result = PipelineResult(tail_outcome=TailOutcome.FAILED)

    def _transition(self, state: PipelineState) -> None:
        if self._result.states and self._result.states[-1] is state:
            return
        logger.info("Pipeline state: %s", state.value)
        self._result.states.append(state)

    def _tail_worker(self) -> None:
        logger.info("Starting log file parser...")
        try:
            handle = self._log_file.open("rb")
        except OSError as exc:
            logger.error("Failed to read %s file: %s", self._log_file, exc)
            self._completion.notify(TailOutcome.FAILED)
            return
        with handle:
            self._tailer = LogTailer(
                handle,
                self._processor.process_line,
                self.tail_token,
                idle_timeout=self._idle_timeout,
                poll_interval=self._poll_interval,
            )
            self._tailer.run(self._completion)

    def _sink_worker(self) -> None:
        self._sink.run(self.sink_token)

    def run(self) -> PipelineResult:
        tail_thread = threading.Thread(
            target=self._tail_worker, name="g2i-tailer", daemon=True
        )
        sink_thread = threading.Thread(
            target=self._sink_worker, name="g2i-sink", daemon=True
        )
        self._transition(PipelineState.RUNNING)
        sink_thread.start()
        tail_thread.start()

        outcome = self._await_tailer()
        self._result.tail_outcome = outcome

        # The tailer has reported completion; only now may the sink stop.
        self.sink_token.request_stop()
        self._transition(PipelineState.DRAINING_SINK)
        self.tail_token.request_stop()

        tail_thread.join()
        sink_thread.join()
        self._transition(PipelineState.STOPPED)
        if self._tailer is not None:
            self._result.lines_read = self._tailer.lines_read
            self._result.lines_skipped = self._tailer.lines_skipped
        return self._result

    def _await_tailer(self) -> TailOutcome:
        while True:
            outcome = self._completion.wait(self._wait_interval)
            if outcome is not None:
                self._transition(PipelineState.DRAINING_TAILER)
                return outcome
            if self._global_stop.should_stop() and not self.tail_token.should_stop():
                logger.info("Stop requested, waiting for parser to finish...")
                self._transition(PipelineState.DRAINING_TAILER)
                self.tail_token.request_stop()


def run_main(
    target_dir: Path,
    run: RunIdentity,
    sink: MetricsStage,
    global_stop: StopToken,
    *,
    idle_timeout: float,
    retry_interval: float = RETRY_INTERVAL_SECONDS,
    poll_interval: float = POLL_INTERVAL_SECONDS,
) -> RunOutcome:
    """Locate the run's log file, then tail it until the run ends.

    A stop during discovery is a clean STOPPED outcome; discovery errors are
    FAILED before any thread is started.
    """
    logger.info("Searching for directory at %s", target_dir)
    try:
        location = resolve_results(
            target_dir.absolute(),
            run.start_time,
            global_stop,
            retry_interval=retry_interval,
        )
    except DiscoveryError as exc:
        logger.error("Results lookup failed with error: %s", exc)
        return RunOutcome.FAILED

    if location is None or location.log_file is None:
        logger.info("Stopped by user before the simulation log was found")
        return RunOutcome.STOPPED

    orchestrator = PipelineOrchestrator(
        location.log_file,
        run,
        sink,
        global_stop,
        idle_timeout=idle_timeout,
        poll_interval=poll_interval,
    )
    result = orchestrator.run()
    logger.info(
        "Parser finished (%s): %d lines read, %d skipped",
        result.tail_outcome.value,
        result.lines_read,
        result.lines_skipped,
    )
    return result.outcome
