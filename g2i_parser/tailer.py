"""Tail a simulation log that is still being written."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import BinaryIO, Callable

from g2i_common.errors import FatalRecordError, RecordParseError
from g2i_common.stop_token import StopToken

from .completion import CompletionSignal

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0


class TailOutcome(str, Enum):
    """Why the tail loop ended."""

    IDLE_TIMEOUT = "idle_timeout"
    STOPPED = "stopped"
    FAILED = "failed"


class IdleClock:
    """Time elapsed since the last complete line."""

    def __init__(self, timeout: float, clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._last = clock()

    def reset(self) -> None:
        self._last = self._clock()

    def elapsed(self) -> float:
        return self._clock() - self._last

    def expired(self) -> bool:
        return self.elapsed() >= self.timeout


class LogTailer:
    """Read complete lines from ``handle`` and hand them to ``on_line``.

    A line is only dispatched once its terminator has been read; a partial
    fragment is kept until the writer finishes it. Reaching the current end
    of file is not an error: the loop waits ``poll_interval`` and retries
    until no complete line has arrived for ``idle_timeout`` seconds.
    """

    def __init__(
        self,
        handle: BinaryIO,
        on_line: Callable[[str], object],
        stop_token: StopToken,
        *,
        idle_timeout: float,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._handle = handle
        self._on_line = on_line
        self._stop_token = stop_token
        self._poll_interval = poll_interval
        self._idle = IdleClock(idle_timeout, clock)
        self._buffer = bytearray()
        self.lines_read = 0
        self.lines_skipped = 0

    @property
    def pending(self) -> bytes:
        """Bytes of an unterminated line held across polls."""
        return bytes(self._buffer)

    def run(self, completion: CompletionSignal[TailOutcome] | None = None) -> TailOutcome:
        """Tail until idle timeout, stop request or fatal record.

        ``completion`` is notified exactly once, whatever the exit path.
        """
        outcome = TailOutcome.FAILED
        try:
            outcome = self._loop()
        finally:
            if completion is not None:
                completion.notify(outcome)
        return outcome

    def _loop(self) -> TailOutcome:
        while True:
            if self._stop_token.should_stop():
                logger.info("Parser received closing signal. Processing stopped")
                return TailOutcome.STOPPED

            try:
                chunk = self._handle.readline()
            except OSError as exc:
                logger.error("Unexpected error encountered while reading file: %s", exc)
                self._stop_token.wait(self._poll_interval)
                continue

            self._buffer.extend(chunk)
            if not chunk.endswith(b"\n"):
                if self._idle.expired():
                    logger.info(
                        "No new lines found for %s seconds. Stopping parser...",
                        self._idle.timeout,
                    )
                    if self._buffer:
                        logger.warning(
                            "Unterminated last line left unprocessed (%d bytes)",
                            len(self._buffer),
                        )
                    return TailOutcome.IDLE_TIMEOUT
                self._stop_token.wait(self._poll_interval)
                continue

            line = self._buffer.decode("utf-8", errors="replace")
            self._idle.reset()
            handled = self._dispatch(line)
            self._buffer.clear()
            if not handled:
                return TailOutcome.FAILED

    def _dispatch(self, line: str) -> bool:
        if not line.strip():
            return True
        self.lines_read += 1
        try:
            self._on_line(line)
        except FatalRecordError as exc:
            logger.error("String processing failed: %s", exc)
            logger.error(
                "Log parser caught an error that can't be handled. Stopping parser..."
            )
            return False
        except RecordParseError as exc:
            self.lines_skipped += 1
            logger.warning("String processing failed: %s", exc)
        except Exception:
            logger.exception("Unexpected error while processing line. Stopping parser...")
            return False
        return True
