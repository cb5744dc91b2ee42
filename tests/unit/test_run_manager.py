"""Unit tests for durable steps and the run manager."""

from __future__ import annotations

import threading
from typing import Iterator

import pytest

from polaris.events import RunCancelled, RunFinished, RunStarted
from polaris.exceptions import ModelCapabilityError, RunCancelledError
from polaris.execution import RunManager, RunOutcome, StepContext
from polaris.models import StepCheckpoint


@pytest.fixture()
def runs(isolated_db, event_bus) -> Iterator[RunManager]:
    manager = RunManager(max_retries=2, retry_backoff_seconds=0, event_bus=event_bus)
    manager.start()
    yield manager
    manager.shutdown(timeout=5)


def test_step_results_are_checkpointed_and_replayed(isolated_db) -> None:
    calls: list[str] = []

    def load() -> dict:
        calls.append("load")
        return {"value": 42}

    first = StepContext(1, threading.Event())
    assert first.run("load", load) == {"value": 42}

    retry = StepContext(1, threading.Event(), attempt=2)
    assert retry.run("load", load) == {"value": 42}
    assert calls == ["load"]
    assert StepCheckpoint.load(1, "load").result == {"value": 42}


def test_cancelled_context_runs_nothing(isolated_db) -> None:
    cancel = threading.Event()
    cancel.set()
    ctx = StepContext(2, cancel)

    with pytest.raises(RunCancelledError):
        ctx.run("never", lambda: pytest.fail("step must not run"))
    assert StepCheckpoint.list_for_run(2) == []


def test_cancel_after_step_keeps_checkpoint(isolated_db) -> None:
    cancel = threading.Event()
    ctx = StepContext(3, cancel)

    def work() -> str:
        cancel.set()
        return "done"

    with pytest.raises(RunCancelledError):
        ctx.run("work", work)
    assert StepCheckpoint.load(3, "work").result == "done"


def test_sleep_is_interrupted_by_cancel(isolated_db) -> None:
    cancel = threading.Event()
    ctx = StepContext(4, cancel)
    timer = threading.Timer(0.05, cancel.set)
    timer.start()

    with pytest.raises(RunCancelledError):
        ctx.sleep("settle", 30)
    timer.join()
    assert StepCheckpoint.load(4, "settle") is None


def test_completed_sleep_is_not_repeated(isolated_db) -> None:
    StepContext(5, threading.Event()).sleep("settle", 0)

    assert StepCheckpoint.load(5, "settle") is not None
    StepContext(5, threading.Event(), attempt=2).sleep("settle", 30)


def test_submit_requires_started_manager(event_bus) -> None:
    manager = RunManager(event_bus=event_bus)

    with pytest.raises(RuntimeError):
        manager.submit(1, lambda ctx: None)


def test_successful_run_emits_lifecycle_events(runs: RunManager, events) -> None:
    handle = runs.submit(10, lambda ctx: ctx.run("only", lambda: "ok"), project_id=3)

    assert runs.wait(10, timeout=5)
    assert handle.outcome == RunOutcome.COMPLETED
    assert events.of_type(RunStarted)[0].project_id == 3
    assert events.of_type(RunFinished)[0].success is True
    assert not runs.is_active(10)


def test_transient_errors_are_retried(runs: RunManager) -> None:
    attempts: list[int] = []

    def flaky(ctx: StepContext) -> None:
        attempts.append(ctx.attempt)
        if ctx.attempt < 3:
            raise ModelCapabilityError("overloaded")

    runs.submit(11, flaky)

    assert runs.wait(11, timeout=5)
    assert attempts == [1, 2, 3]
    assert runs.get(11).outcome == RunOutcome.COMPLETED


def test_exhausted_retries_call_failure_handler(runs: RunManager) -> None:
    failures: list[BaseException] = []

    def always_down(ctx: StepContext) -> None:
        raise ModelCapabilityError("down")

    runs.submit(12, always_down, on_failure=failures.append)

    assert runs.wait(12, timeout=5)
    handle = runs.get(12)
    assert (handle.outcome, handle.attempts) == (RunOutcome.FAILED, 3)
    assert len(failures) == 1


def test_other_errors_are_not_retried(runs: RunManager) -> None:
    failures: list[BaseException] = []

    def broken(ctx: StepContext) -> None:
        raise KeyError("missing")

    runs.submit(13, broken, on_failure=failures.append)

    assert runs.wait(13, timeout=5)
    assert runs.get(13).attempts == 1
    assert isinstance(failures[0], KeyError)


def test_cancelled_run_skips_failure_handler(runs: RunManager, events) -> None:
    started = threading.Event()
    failures: list[BaseException] = []

    def long_sleep(ctx: StepContext) -> None:
        started.set()
        ctx.sleep("settle", 30)

    runs.submit(14, long_sleep, on_failure=failures.append)
    assert started.wait(5)
    assert runs.cancel(14) is True

    assert runs.wait(14, timeout=5)
    assert runs.get(14).outcome == RunOutcome.CANCELLED
    assert failures == []
    assert [event.run_id for event in events.of_type(RunCancelled)] == [14]


def test_cancel_of_unknown_or_finished_run_is_noop(runs: RunManager) -> None:
    assert runs.cancel(999) is False

    runs.submit(15, lambda ctx: None)
    assert runs.wait(15, timeout=5)
    assert runs.cancel(15) is False
    assert runs.wait(999, timeout=0) is False


def test_resubmitting_active_run_returns_same_handle(runs: RunManager) -> None:
    release = threading.Event()
    first = runs.submit(16, lambda ctx: release.wait(5))

    assert runs.submit(16, lambda ctx: None) is first
    release.set()
    assert runs.wait(16, timeout=5)


def test_shutdown_cancels_active_runs(isolated_db, event_bus) -> None:
    manager = RunManager(retry_backoff_seconds=0, event_bus=event_bus)
    manager.start()
    started = threading.Event()

    def long_sleep(ctx: StepContext) -> None:
        started.set()
        ctx.sleep("settle", 30)

    handle = manager.submit(17, long_sleep)
    assert started.wait(5)

    manager.shutdown(timeout=5)

    assert handle.outcome == RunOutcome.CANCELLED
    assert manager.running is False
    assert manager.shutdown(timeout=5) == []


def test_shutdown_reports_only_interrupted_runs(isolated_db, event_bus) -> None:
    manager = RunManager(retry_backoff_seconds=0, event_bus=event_bus)
    manager.start()
    manager.submit(18, lambda ctx: None)
    assert manager.wait(18, timeout=5)
    started = threading.Event()

    def long_sleep(ctx: StepContext) -> None:
        started.set()
        ctx.sleep("settle", 30)

    manager.submit(19, long_sleep, project_id=4)
    assert started.wait(5)

    interrupted = manager.shutdown(timeout=5)

    assert [(handle.run_id, handle.project_id) for handle in interrupted] == [(19, 4)]
    assert interrupted[0].outcome == RunOutcome.CANCELLED


def test_finished_handles_are_evicted_beyond_history(isolated_db, event_bus) -> None:
    manager = RunManager(finished_history=2, event_bus=event_bus)
    manager.start()
    try:
        for run_id in range(20, 25):
            manager.submit(run_id, lambda ctx: None)
            assert manager.wait(run_id, timeout=5)

        assert manager.get(20) is None
        assert manager.get(21) is None
        assert [manager.get(run_id).outcome for run_id in (22, 23, 24)] == [RunOutcome.COMPLETED] * 3
    finally:
        manager.shutdown(timeout=5)
