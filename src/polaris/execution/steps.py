"""Durable, cancellable steps for agent runs."""

from __future__ import annotations

import logging
import threading
from typing import Callable, TypeVar

from polaris.exceptions import RunCancelledError
from polaris.models import StepCheckpoint

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class StepContext:
    """Runs named steps for one run attempt.

    A step whose result is already checkpointed is not executed again; its
    recorded result is returned instead. Results must be JSON serializable.
    The cancel signal is checked before and after every step and interrupts
    sleeps.
    """

    def __init__(self, run_id: int, cancel_event: threading.Event, attempt: int = 1) -> None:
        self.run_id = run_id
        self.attempt = attempt
        self._cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise RunCancelledError("Run cancelled", {"run_id": self.run_id})

    def run(self, name: str, fn: Callable[[], T]) -> T:
        """Execute ``fn`` once per run under the step ``name``."""
        self.check_cancelled()
        checkpoint = StepCheckpoint.load(self.run_id, name)
        if checkpoint is not None:
            LOGGER.debug("Step replayed | run=%s | step=%s", self.run_id, name)
            return checkpoint.result

        result = fn()
        StepCheckpoint.record(self.run_id, name, result)
        LOGGER.debug("Step completed | run=%s | step=%s | attempt=%s", self.run_id, name, self.attempt)
        self.check_cancelled()
        return result

    def sleep(self, name: str, seconds: float) -> None:
        """Wait ``seconds`` unless cancelled; a completed sleep is not repeated."""
        self.check_cancelled()
        if StepCheckpoint.load(self.run_id, name) is not None:
            return
        if seconds > 0 and self._cancel_event.wait(seconds):
            self.check_cancelled()
        StepCheckpoint.record(self.run_id, name, None)


__all__ = ["StepContext"]
