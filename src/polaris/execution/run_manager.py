"""Background execution of agent runs with cooperative cancellation and retries."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from polaris.config import DEFAULT_FINISHED_RUN_HISTORY, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_BACKOFF_SECONDS
from polaris.event_bus import EventBus, get_event_bus
from polaris.events import RunCancelled, RunFinished, RunStarted
from polaris.exceptions import ModelCapabilityError, RunCancelledError
from polaris.execution.steps import StepContext

LOGGER = logging.getLogger(__name__)

RunFunction = Callable[[StepContext], Any]
FailureHandler = Callable[[BaseException], None]


class RunOutcome:
    """Constants describing how a run ended."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunHandle:
    """Bookkeeping for one scheduled run."""

    run_id: int
    project_id: Optional[int] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    done_event: threading.Event = field(default_factory=threading.Event)
    outcome: str = RunOutcome.PENDING
    attempts: int = 0
    error: Optional[BaseException] = None
    thread: Optional[threading.Thread] = None


class RunManager:
    """Runs each agent run on its own worker thread.

    A run is retried from the top after a ``ModelCapabilityError``; completed
    steps replay from their checkpoints. Other failures, and exhausted
    retries, go to the run's failure handler. A cancelled run never reaches
    the failure handler. Only the most recent ``finished_history`` finished
    handles are kept for lookups.
    """

    def __init__(
        self,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        finished_history: int = DEFAULT_FINISHED_RUN_HISTORY,
        event_bus: EventBus | None = None,
    ) -> None:
        self._max_retries = max(0, int(max_retries))
        self._retry_backoff = max(0.0, float(retry_backoff_seconds))
        self._finished_history = max(0, int(finished_history))
        self._event_bus = event_bus or get_event_bus()
        self._runs: dict[int, RunHandle] = {}
        self._lock = threading.RLock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            self._running = True
        LOGGER.info("Run manager started")

    def shutdown(self, timeout: float | None = None) -> list[RunHandle]:
        """Stop accepting runs, cancel the active ones and join their threads.

        Returns the handles of the runs that were still active, so the caller
        can settle whatever state those runs left behind.
        """
        with self._lock:
            self._running = False
            handles = [handle for handle in self._runs.values() if not handle.done_event.is_set()]
        for handle in handles:
            handle.cancel_event.set()
        for handle in handles:
            handle.done_event.wait(timeout)
        LOGGER.info("Run manager stopped | cancelled=%d", len(handles))
        return handles

    def submit(
        self,
        run_id: int,
        fn: RunFunction,
        *,
        on_failure: FailureHandler | None = None,
        project_id: int | None = None,
    ) -> RunHandle:
        """Schedule ``fn`` under ``run_id``; an already active run is returned as-is."""
        with self._lock:
            if not self._running:
                raise RuntimeError("Run manager is not started")
            existing = self._runs.get(run_id)
            if existing is not None and not existing.done_event.is_set():
                LOGGER.warning("Run already active | run=%s", run_id)
                return existing
            self._prune_finished()
            handle = RunHandle(run_id=run_id, project_id=project_id)
            thread = threading.Thread(
                target=self._execute,
                args=(handle, fn, on_failure),
                name=f"polaris-run-{run_id}",
                daemon=True,
            )
            handle.thread = thread
            self._runs[run_id] = handle

        LOGGER.info("Run started | run=%s | project=%s", run_id, project_id)
        self._event_bus.emit(RunStarted(run_id=run_id, project_id=project_id))
        thread.start()
        return handle

    def cancel(self, run_id: int) -> bool:
        """Deliver the cancel signal; unknown or finished runs are a no-op."""
        with self._lock:
            handle = self._runs.get(run_id)
        if handle is None or handle.done_event.is_set():
            return False
        handle.cancel_event.set()
        LOGGER.info("Cancel signal delivered | run=%s", run_id)
        return True

    def is_active(self, run_id: int) -> bool:
        with self._lock:
            handle = self._runs.get(run_id)
        return handle is not None and not handle.done_event.is_set()

    def get(self, run_id: int) -> Optional[RunHandle]:
        with self._lock:
            return self._runs.get(run_id)

    def wait(self, run_id: int, timeout: float | None = None) -> bool:
        """Block until the run ends; returns False on timeout or for unknown runs."""
        handle = self.get(run_id)
        if handle is None:
            return False
        return handle.done_event.wait(timeout)

    def _prune_finished(self) -> None:
        finished = [run_id for run_id, handle in self._runs.items() if handle.done_event.is_set()]
        excess = len(finished) - self._finished_history
        for run_id in finished[:max(0, excess)]:
            del self._runs[run_id]

    def _execute(self, handle: RunHandle, fn: RunFunction, on_failure: FailureHandler | None) -> None:
        started = time.perf_counter()
        try:
            while True:
                handle.attempts += 1
                context = StepContext(handle.run_id, handle.cancel_event, attempt=handle.attempts)
                try:
                    fn(context)
                except RunCancelledError:
                    self._mark_cancelled(handle)
                    return
                except ModelCapabilityError as exc:
                    if handle.cancel_event.is_set():
                        self._mark_cancelled(handle)
                        return
                    if handle.attempts <= self._max_retries:
                        delay = self._retry_backoff * handle.attempts
                        LOGGER.warning(
                            "Run attempt failed, retrying | run=%s | attempt=%d | delay=%.1fs | error=%s",
                            handle.run_id,
                            handle.attempts,
                            delay,
                            exc,
                        )
                        if handle.cancel_event.wait(delay):
                            self._mark_cancelled(handle)
                            return
                        continue
                    self._mark_failed(handle, exc, on_failure)
                    return
                except Exception as exc:  # noqa: BLE001
                    if handle.cancel_event.is_set():
                        self._mark_cancelled(handle)
                        return
                    self._mark_failed(handle, exc, on_failure)
                    return
                else:
                    handle.outcome = RunOutcome.COMPLETED
                    LOGGER.info(
                        "Run completed | run=%s | attempts=%d | duration=%.2fs",
                        handle.run_id,
                        handle.attempts,
                        time.perf_counter() - started,
                    )
                    self._event_bus.emit(RunFinished(run_id=handle.run_id, success=True))
                    return
        finally:
            handle.done_event.set()

    def _mark_cancelled(self, handle: RunHandle) -> None:
        handle.outcome = RunOutcome.CANCELLED
        LOGGER.info("Run cancelled | run=%s | attempts=%d", handle.run_id, handle.attempts)
        self._event_bus.emit(RunCancelled(run_id=handle.run_id))

    def _mark_failed(self, handle: RunHandle, exc: BaseException, on_failure: FailureHandler | None) -> None:
        handle.outcome = RunOutcome.FAILED
        handle.error = exc
        LOGGER.error("Run failed | run=%s | attempts=%d | error=%s", handle.run_id, handle.attempts, exc, exc_info=exc)
        if on_failure is not None:
            try:
                on_failure(exc)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Failure handler raised | run=%s", handle.run_id)
        self._event_bus.emit(RunFinished(run_id=handle.run_id, success=False, summary=str(exc)))


__all__ = ["FailureHandler", "RunFunction", "RunHandle", "RunManager", "RunOutcome"]
