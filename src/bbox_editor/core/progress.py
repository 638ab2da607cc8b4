"""Progress and cancellation tracking shared by codec tasks."""

from __future__ import annotations

import logging
from threading import Event, Lock
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class IOProgress:
    """
    Counter of processed work items that can be read from other threads.

    The fraction reported by `value` never decreases while an operation is
    running. Cancellation is cooperative: tasks check `is_cancelled` before
    they start and skip their work if it is set.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        """
        Initialize the progress tracker.

        Args:
            callback: Optional function called with the new fraction after each step
        """
        self._lock = Lock()
        self._cancelled = Event()
        self._total = 0
        self._processed = 0
        self._callbacks: List[ProgressCallback] = [callback] if callback else []

    def add_callback(self, callback: ProgressCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def reset(self, total: int) -> None:
        """
        Start a new operation with the given number of work items.

        Args:
            total: Number of work items
        """
        with self._lock:
            self._total = max(0, total)
            self._processed = 0

    def advance(self, steps: int = 1) -> None:
        """Mark one or more work items as processed."""
        with self._lock:
            self._processed = min(self._processed + steps, self._total) if self._total else self._processed
            value = self._fraction()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            callback(value)

    def cancel(self) -> None:
        """Request cancellation of the running operation."""
        logger.info("Cancellation requested")
        self._cancelled.set()

    def clear_cancellation(self) -> None:
        """Withdraw a cancellation request once the operation it targeted has finished."""
        self._cancelled.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def value(self) -> float:
        """Processed fraction in [0, 1]."""
        with self._lock:
            return self._fraction()

    def _fraction(self) -> float:
        if self._total == 0:
            return 0.0
        return self._processed / self._total
