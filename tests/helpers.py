"""Reusable helpers for Polaris's automated tests."""

from __future__ import annotations

import copy
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Sequence

from polaris.exceptions import ModelCapabilityError
from polaris.services.model_client import ModelOutput, TextOutput, ToolCallOutput


def text(content: str) -> TextOutput:
    return TextOutput(content=content)


def tool_call(name: str, arguments: Mapping[str, Any] | None = None, call_id: str | None = None) -> ToolCallOutput:
    return ToolCallOutput(id=call_id or f"call-{uuid.uuid4().hex[:8]}", name=name, arguments=dict(arguments or {}))


class ScriptedModel:
    """ModelCapability double replaying canned turns.

    Each script entry is a list of outputs, an exception to raise, or a
    callable receiving the transcript. Once the script is exhausted the
    last entry repeats.
    """

    def __init__(self, script: Sequence[Any]) -> None:
        self._script = list(script)
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def complete(
        self,
        system: str,
        messages: Sequence[Mapping[str, Any]],
        tools: Sequence[Mapping[str, Any]],
    ) -> list[ModelOutput]:
        with self._lock:
            index = len(self.calls)
            self.calls.append(
                {"system": system, "messages": copy.deepcopy(list(messages)), "tools": [t["name"] for t in tools]}
            )
            entry = self._script[min(index, len(self._script) - 1)]
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return list(entry(messages))
        return list(entry)


class FlakyModel(ScriptedModel):
    """Raises a transient failure on the listed call numbers (1-based)."""

    def __init__(self, script: Sequence[Any], fail_on: Sequence[int]) -> None:
        super().__init__(script)
        self._fail_on = set(fail_on)
        self.attempts = 0

    def complete(self, system, messages, tools):
        self.attempts += 1
        if self.attempts in self._fail_on:
            raise ModelCapabilityError("temporarily unavailable")
        return super().complete(system, messages, tools)


@dataclass
class FakeTitleGenerator:
    title: str = "Build A Todo App"
    error: Exception | None = None
    prompts: List[str] = field(default_factory=list)

    def generate_title(self, message: str) -> str:
        self.prompts.append(message)
        if self.error is not None:
            raise self.error
        return self.title


class RecordingBlobStore:
    """In-memory BlobStore that remembers every release."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def put(self, data: bytes) -> str:
        blob_ref = uuid.uuid4().hex
        self.blobs[blob_ref] = data
        return blob_ref

    def get_url(self, blob_ref: str) -> str | None:
        return f"memory://{blob_ref}" if blob_ref in self.blobs else None

    def delete(self, blob_ref: str) -> None:
        self.deleted.append(blob_ref)
        self.blobs.pop(blob_ref, None)


class RecordingSignalSink:
    """Cancel signal sink that records the runs it was asked to stop."""

    def __init__(self, fail_for: Sequence[int] = ()) -> None:
        self.cancelled: list[int] = []
        self._fail_for = set(fail_for)

    def cancel(self, run_id: int) -> bool:
        self.cancelled.append(run_id)
        if run_id in self._fail_for:
            raise RuntimeError("signal transport down")
        return True


class EventRecorder:
    """Event bus subscriber collecting every event it receives."""

    def __init__(self) -> None:
        self.events: list[object] = []
        self._lock = threading.Lock()

    def __call__(self, event: object) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: type) -> list[Any]:
        with self._lock:
            return [event for event in self.events if isinstance(event, event_type)]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
