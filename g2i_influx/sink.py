"""Metrics transmission stage writing events to InfluxDB in batches."""

from __future__ import annotations

import base64
import logging
import queue
import threading
import time
from collections import Counter
from typing import Callable
from urllib import error, request
from urllib.parse import urlencode

from g2i_common.errors import MetricsRejectedError, MetricsTransportError
from g2i_common.stop_token import StopToken

from .config import InfluxConfig
from .line_protocol import PointLike, encode_event

_logger = logging.getLogger(__name__)


def build_write_url(config: InfluxConfig) -> str:
    """Return the InfluxDB 1.x write endpoint for ``config``."""
    params = {"db": config.database, "precision": "ns"}
    if config.retention_policy:
        params["rp"] = config.retention_policy
    return f"{config.url}/write?{urlencode(params)}"


def _auth_header(config: InfluxConfig) -> dict[str, str]:
    if not config.username:
        return {}
    raw = f"{config.username}:{config.password or ''}".encode("utf-8")
    return {"Authorization": "Basic " + base64.b64encode(raw).decode("ascii")}


class InfluxWriter:
    """POST line protocol batches, retrying transient failures."""

    def __init__(self, config: InfluxConfig) -> None:
        self._config = config
        self._url = build_write_url(config)
        self._headers = {"Content-Type": "text/plain; charset=utf-8"}
        self._headers.update(_auth_header(config))

    @property
    def url(self) -> str:
        return self._url

    def write(self, lines: list[str]) -> None:
        """Send ``lines``.

        Raises MetricsRejectedError when InfluxDB refuses the batch and
        MetricsTransportError once retries are spent.
        """
        data = "\n".join(lines).encode("utf-8")
        req = request.Request(self._url, data=data, headers=self._headers, method="POST")
        last_error = "unknown error"
        for attempt in range(self._config.max_retries + 1):
            done, last_error = self._try_write(req, len(lines), attempt)
            if done:
                return
            self._sleep_backoff(attempt)
        raise MetricsTransportError(
            f"InfluxDB write failed after {self._config.max_retries + 1} attempts: {last_error}",
            context={"points": len(lines), "url": self._url},
        )

    def _try_write(self, req: request.Request, count: int, attempt: int) -> tuple[bool, str]:
        try:
            with request.urlopen(  # nosec B310
                req, timeout=self._config.timeout_seconds
            ) as resp:
                if 200 <= resp.status < 300:
                    return True, ""
                return False, f"HTTP {resp.status}"
        except error.HTTPError as exc:
            if 400 <= exc.code < 500:
                raise MetricsRejectedError(
                    f"InfluxDB rejected batch (HTTP {exc.code}), dropping {count} points",
                    context={"points": count, "status": exc.code},
                    cause=exc,
                ) from exc
            _logger.debug(
                "InfluxDB write failed (HTTP %d), attempt %d/%d",
                exc.code,
                attempt + 1,
                self._config.max_retries + 1,
            )
            return False, f"HTTP {exc.code}"
        except (error.URLError, OSError) as exc:
            _logger.debug(
                "InfluxDB write error: %s, attempt %d/%d",
                exc,
                attempt + 1,
                self._config.max_retries + 1,
            )
            return False, str(exc)

    def _sleep_backoff(self, attempt: int) -> None:
        if attempt < self._config.max_retries and self._config.backoff_base > 0:
            delay = self._config.backoff_base * (self._config.backoff_factor ** attempt)
            time.sleep(delay)


class InfluxSink:
    """Queue-backed sink: ``submit`` never blocks, ``run`` ships batches.

    ``run`` keeps going after its stop token trips until the queue is empty
    and the last partial batch has been written.
    """

    def __init__(
        self,
        config: InfluxConfig,
        writer: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._config = config
        self._write = writer or InfluxWriter(config).write
        self._queue: queue.Queue[PointLike] = queue.Queue(maxsize=config.max_queue_size)
        self._lock = threading.Lock()
        self.written: Counter[str] = Counter()
        self.dropped = 0

    def submit(self, event: PointLike) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self._count_dropped(1)
            _logger.warning("Metrics queue full, dropping %s point", event.measurement)

    def run(self, stop_token: StopToken) -> None:
        _logger.info("Starting metrics sink, writing to %s", self._config.url)
        pending: list[PointLike] = []
        next_flush = time.monotonic() + self._config.flush_interval
        while not stop_token.should_stop() or not self._queue.empty():
            timeout = max(0.0, next_flush - time.monotonic())
            event = self._get_event(min(timeout, 0.1))
            if event is not None:
                pending.append(event)
            next_flush = self._flush_if_ready(pending, next_flush)

        if pending:
            self._flush(pending)
        _logger.info(
            "Metrics sink stopped: %d points written, %d dropped",
            sum(self.written.values()),
            self.dropped,
        )

    def _get_event(self, timeout: float) -> PointLike | None:
        try:
            event = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        self._queue.task_done()
        return event

    def _flush_if_ready(self, pending: list[PointLike], next_flush: float) -> float:
        now = time.monotonic()
        if pending and (len(pending) >= self._config.batch_size or now >= next_flush):
            self._flush(pending)
            return now + self._config.flush_interval
        if now >= next_flush:
            return now + self._config.flush_interval
        return next_flush

    def _flush(self, pending: list[PointLike]) -> None:
        lines: list[str] = []
        counts: Counter[str] = Counter()
        for event in pending:
            try:
                lines.append(encode_event(event))
            except ValueError as exc:
                _logger.warning("Skipping unencodable point: %s", exc)
                continue
            counts[event.measurement] += 1
        pending.clear()
        if not lines:
            return
        try:
            self._write(lines)
        except MetricsRejectedError as exc:
            self._count_dropped(len(lines))
            _logger.warning("%s", exc)
            return
        except MetricsTransportError as exc:
            self._count_dropped(len(lines))
            _logger.error("%s", exc)
            return
        with self._lock:
            self.written.update(counts)

    def _count_dropped(self, count: int) -> None:
        with self._lock:
            self.dropped += count
