"""Stop token helpers for graceful interruption and file-based cancellation."""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Callable, Dict, Optional


class StopToken:
    """
    Lightweight cooperative stop controller.

    It can be tripped by signals (SIGINT/SIGTERM), by the presence of a stop
    file on disk, or programmatically. Polling loops call `should_stop()` at
    the top of every iteration and sleep through `wait()` so a stop request
    cuts the sleep short.
    """

    def __init__(
        self,
        stop_file: Optional[Path] = None,
        enable_signals: bool = True,
        on_stop: Optional[Callable[[], None]] = None,
        name: str = "stop",
    ) -> None:
        self.stop_file = stop_file
        self.name = name
        self._on_stop = on_stop
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._prev_handlers: Dict[int, Callable] = {}
        if enable_signals:
            self._install_signal_handlers()

    def _install_signal_handlers(self) -> None:
        """Capture SIGINT/SIGTERM and mark the token as stopped."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._prev_handlers[sig] = signal.getsignal(sig)
                signal.signal(sig, self._handle_signal)  # type: ignore[arg-type]
            except (ValueError, OSError):
                # Not on the main thread or unsupported signal on this platform.
                continue

    def _handle_signal(self, signum: int, frame) -> None:  # type: ignore[override]
        self.request_stop()

    def request_stop(self) -> None:
        """Mark the token as stopped and trigger callback once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
        if self._on_stop:
            try:
                self._on_stop()
            except Exception:
                pass

    def should_stop(self) -> bool:
        """Return True when stop was requested or the stop file exists."""
        if self._event.is_set():
            return True
        if self.stop_file and self.stop_file.exists():
            self.request_stop()
            return True
        return False

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if a stop was requested."""
        self._event.wait(timeout)
        return self.should_stop()

    def restore(self) -> None:
        """Restore original signal handlers."""
        for sig, handler in self._prev_handlers.items():
            try:
                signal.signal(sig, handler)  # type: ignore[arg-type]
            except (ValueError, OSError):
                continue
        self._prev_handlers.clear()

    def __enter__(self) -> "StopToken":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.restore()
