"""Typed feedback events shared across Polaris services and UI consumers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence


_Params = Mapping[str, Any] | Sequence[Any] | str | None


@dataclass(frozen=True, slots=True)
class ToolCallStarted:
    """Emitted before a tool is executed on behalf of an agent run."""

    tool_name: str
    parameters: _Params = None
    run_id: int | None = None


@dataclass(frozen=True, slots=True)
class ToolCallCompleted:
    """Emitted after a tool finishes and produced a non-error result."""

    tool_name: str
    result: Any = None
    duration: float | None = None
    run_id: int | None = None


@dataclass(frozen=True, slots=True)
class ToolCallFailed:
    """Emitted when a tool rejected its input or failed while executing."""

    tool_name: str
    error: str
    duration: float | None = None
    run_id: int | None = None


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """Describes a high-level status message and associated phase."""

    message: str
    phase: str | None = None
    run_id: int | None = None


@dataclass(frozen=True, slots=True)
class FileTreeChanged:
    """A project tree was mutated (create, rename, update, delete)."""

    project_id: int
    operation: str
    node_ids: tuple[int, ...] = ()


@dataclass(frozen=True, slots=True)
class MessageStatusChanged:
    """An assistant message reached a new status."""

    message_id: int
    status: str
    project_id: int | None = None


@dataclass(frozen=True, slots=True)
class RunStarted:
    """An agent run was scheduled for an assistant message."""

    run_id: int
    project_id: int | None = None


@dataclass(frozen=True, slots=True)
class RunFinished:
    """An agent run ended, successfully or through its failure handler."""

    run_id: int
    success: bool
    summary: str = ""


@dataclass(frozen=True, slots=True)
class RunCancelled:
    """An agent run observed its cancellation signal and stopped."""

    run_id: int


FeedbackEvent = (
    ToolCallStarted
    | ToolCallCompleted
    | ToolCallFailed
    | StatusUpdate
    | FileTreeChanged
    | MessageStatusChanged
    | RunStarted
    | RunFinished
    | RunCancelled
)

__all__ = [
    "FeedbackEvent",
    "FileTreeChanged",
    "MessageStatusChanged",
    "RunCancelled",
    "RunFinished",
    "RunStarted",
    "StatusUpdate",
    "ToolCallCompleted",
    "ToolCallFailed",
    "ToolCallStarted",
]
