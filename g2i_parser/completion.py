"""Single-slot completion notification between pipeline units."""

from __future__ import annotations

import queue
from typing import Generic, TypeVar

T = TypeVar("T")


class CompletionSignal(Generic[T]):
    """Carries exactly one completion value from a worker to its coordinator."""

    def __init__(self) -> None:
        self._slot: queue.Queue[T] = queue.Queue(maxsize=1)

    def notify(self, value: T) -> None:
        try:
            self._slot.put_nowait(value)
        except queue.Full:
            raise RuntimeError(
                "Completion already signalled and not yet consumed"
            ) from None

    def wait(self, timeout: float | None = None) -> T | None:
        """Return the completion value, or None if it did not arrive in time."""
        try:
            return self._slot.get(timeout=timeout)
        except queue.Empty:
            return None
