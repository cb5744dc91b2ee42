"""Inbound entry points: send a message, cancel runs, start a project from a prompt."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

from polaris.config import PROJECT_NAME_WORDS
from polaris.exceptions import NotFoundError, UnauthorizedError
from polaris.execution.run_manager import RunManager
from polaris.models import Conversation, Message, MessageRole, MessageStatus, Project
from polaris.services.agent_pipeline import AgentPipeline, RunRequest
from polaris.services.cancellation import CancellationCoordinator
from polaris.services.ledger import ConversationLedger

LOGGER = logging.getLogger(__name__)


def random_project_name(rng: random.Random | None = None) -> str:
    """Return an ``adjective-color-animal`` project name."""
    chooser = rng or random
    return "-".join(
        chooser.choice(PROJECT_NAME_WORDS[group]) for group in ("adjectives", "colors", "animals")
    )


@dataclass(frozen=True, slots=True)
class SendResult:
    """What an inbound message created and which runs it cancelled."""

    user_message: Message
    assistant_message: Message
    cancelled_message_ids: frozenset[int]


@dataclass(frozen=True, slots=True)
class ProjectStart:
    project: Project
    conversation: Conversation
    assistant_message: Message


class MessageService:
    """Records user messages and schedules one agent run per message.

    Before anything is written, every other processing run of the project
    is cancelled, so a project has at most one authoritative run.
    """

    def __init__(
        self,
        ledger: ConversationLedger,
        pipeline: AgentPipeline,
        runs: RunManager,
        *,
        preflight: Optional[Callable[[], None]] = None,
    ) -> None:
        self._ledger = ledger
        self._pipeline = pipeline
        self._runs = runs
        self._coordinator = CancellationCoordinator(ledger, runs)
        self._preflight = preflight

    def send_message(self, owner_id: str, conversation_id: int, text: str) -> SendResult:
        """Record ``text`` as a user message and start an agent run for it.

        Raises:
            ConfigurationMissingError: The model capability is not configured.
            NotFoundError: The conversation or its project does not exist.
            UnauthorizedError: The caller does not own the project.
        """
        if not text or not text.strip():
            raise ValueError("Message text cannot be empty")
        self._check_configuration()

        conversation = self._ledger.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", {"conversation_id": conversation_id})
        self._require_owner(owner_id, conversation.project_id)

        cancelled = self._coordinator.cancel_all_processing(conversation.project_id)
        user_message = self._ledger.append_message(conversation_id, MessageRole.USER, text)
        assistant_message = self._ledger.append_message(conversation_id, MessageRole.ASSISTANT, "")
        self._start_run(assistant_message, text)

        LOGGER.info(
            "Message accepted | conversation=%s | project=%s | run=%s | cancelled=%d",
            conversation_id,
            conversation.project_id,
            assistant_message.id,
            len(cancelled),
        )
        return SendResult(
            user_message=user_message,
            assistant_message=assistant_message,
            cancelled_message_ids=frozenset(cancelled),
        )

    def cancel(self, owner_id: str, project_id: int) -> set[int]:
        """Cancel every processing run of a project; returns the cancelled message ids."""
        self._require_owner(owner_id, project_id)
        return self._coordinator.cancel_all_processing(project_id)

    def create_project_with_prompt(self, owner_id: str, prompt: str) -> ProjectStart:
        """Create a randomly named project, a conversation, and the first run."""
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")
        self._check_configuration()

        project = Project.create(owner_id, random_project_name())
        conversation = self._ledger.create_conversation(project.id)
        self._ledger.append_message(conversation.id, MessageRole.USER, prompt)
        assistant_message = self._ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")
        self._start_run(assistant_message, prompt)

        LOGGER.info(
            "Project created from prompt | project=%s | name=%s | conversation=%s | run=%s",
            project.id,
            project.name,
            conversation.id,
            assistant_message.id,
        )
        return ProjectStart(project=project, conversation=conversation, assistant_message=assistant_message)

    def shutdown(self, timeout: float | None = None) -> set[int]:
        """Stop the run manager and mark every interrupted run's message cancelled.

        Returns the ids of messages this call moved to ``cancelled``.
        """
        cancelled: set[int] = set()
        for handle in self._runs.shutdown(timeout=timeout):
            if self._ledger.set_message_status(handle.run_id, MessageStatus.CANCELLED):
                cancelled.add(handle.run_id)
        if cancelled:
            LOGGER.info("Interrupted runs cancelled at shutdown | ids=%s", sorted(cancelled))
        return cancelled

    def _start_run(self, assistant_message: Message, text: str) -> None:
        request = RunRequest(
            message_id=assistant_message.id,
            conversation_id=assistant_message.conversation_id,
            project_id=assistant_message.project_id,
            message=text,
        )
        self._runs.submit(
            request.message_id,
            lambda ctx: self._pipeline.run(ctx, request),
            on_failure=lambda exc: self._pipeline.handle_failure(request, exc),
            project_id=request.project_id,
        )

    def _check_configuration(self) -> None:
        if self._preflight is not None:
            self._preflight()

    @staticmethod
    def _require_owner(owner_id: str, project_id: int) -> Project:
        project = Project.get_by_id(project_id)
        if project is None:
            raise NotFoundError("Project not found", {"project_id": project_id})
        if project.owner_id != owner_id:
            raise UnauthorizedError("Unauthorized", {"project_id": project_id})
        return project


__all__ = ["MessageService", "ProjectStart", "SendResult", "random_project_name"]
