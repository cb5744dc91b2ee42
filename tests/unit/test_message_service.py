"""Unit tests for the inbound message flow."""

from __future__ import annotations

import re
import random
import threading
from typing import Iterator

import pytest

from polaris.exceptions import ConfigurationMissingError, NotFoundError, UnauthorizedError
from polaris.execution import RunManager, RunOutcome
from polaris.models import MessageRole, MessageStatus, Project
from polaris.services.agent_pipeline import AgentPipeline, PipelineOptions
from polaris.services.ledger import ConversationLedger
from polaris.services.message_service import MessageService, random_project_name
from polaris.store.tree_store import TreeStore
from tests.helpers import FakeTitleGenerator, ScriptedModel, text


@pytest.fixture()
def runs(isolated_db, event_bus) -> Iterator[RunManager]:
    manager = RunManager(max_retries=0, retry_backoff_seconds=0, event_bus=event_bus)
    manager.start()
    yield manager
    manager.shutdown(timeout=5)


def make_service(
    ledger: ConversationLedger,
    store: TreeStore,
    runs: RunManager,
    model,
    event_bus,
    *,
    preflight=None,
    title_generator=None,
    settle_delay_seconds: float = 0,
) -> MessageService:
    pipeline = AgentPipeline(
        ledger,
        store,
        lambda: model,
        title_generator=title_generator,
        options=PipelineOptions(settle_delay_seconds=settle_delay_seconds),
        event_bus=event_bus,
    )
    return MessageService(ledger, pipeline, runs, preflight=preflight)


def test_send_records_messages_and_completes_run(ledger, store, runs, project, event_bus) -> None:
    service = make_service(ledger, store, runs, ScriptedModel([[text("Hello there")]]), event_bus)
    conversation = ledger.create_conversation(project.id, "Chat")

    result = service.send_message("owner-1", conversation.id, "hi")

    assert result.user_message.role == MessageRole.USER
    assert result.assistant_message.status == MessageStatus.PROCESSING
    assert result.cancelled_message_ids == frozenset()
    assert runs.wait(result.assistant_message.id, timeout=10)
    stored = ledger.get_message(result.assistant_message.id)
    assert (stored.status, stored.content) == (MessageStatus.COMPLETED, "Hello there")


def test_new_message_cancels_the_run_in_flight(ledger, store, runs, project, event_bus) -> None:
    gate = threading.Event()

    def wait_for_gate(messages):
        gate.wait(5)
        return [text(f"answer to {messages[0]['content']}")]

    service = make_service(ledger, store, runs, ScriptedModel([wait_for_gate]), event_bus)
    conversation = ledger.create_conversation(project.id, "Chat")

    first = service.send_message("owner-1", conversation.id, "first")
    second = service.send_message("owner-1", conversation.id, "second")
    gate.set()

    assert second.cancelled_message_ids == frozenset({first.assistant_message.id})
    assert runs.wait(first.assistant_message.id, timeout=10)
    assert runs.wait(second.assistant_message.id, timeout=10)

    cancelled = ledger.get_message(first.assistant_message.id)
    assert (cancelled.status, cancelled.content) == (MessageStatus.CANCELLED, "")
    assert runs.get(first.assistant_message.id).outcome == RunOutcome.CANCELLED
    assert ledger.get_message(second.assistant_message.id).content == "answer to second"
    assert [message.id for message in ledger.processing_messages(project.id)] == []


def test_missing_configuration_writes_nothing(ledger, store, runs, project, event_bus) -> None:
    def preflight() -> None:
        raise ConfigurationMissingError("ANTHROPIC_API_KEY is not configured")

    service = make_service(ledger, store, runs, ScriptedModel([[text("x")]]), event_bus, preflight=preflight)
    conversation = ledger.create_conversation(project.id, "Chat")

    with pytest.raises(ConfigurationMissingError):
        service.send_message("owner-1", conversation.id, "hi")
    assert ledger.list_messages(conversation.id) == []


def test_only_the_owner_may_send_or_cancel(ledger, store, runs, project, event_bus) -> None:
    service = make_service(ledger, store, runs, ScriptedModel([[text("x")]]), event_bus)
    conversation = ledger.create_conversation(project.id, "Chat")

    with pytest.raises(UnauthorizedError):
        service.send_message("intruder", conversation.id, "hi")
    with pytest.raises(UnauthorizedError):
        service.cancel("intruder", project.id)
    with pytest.raises(NotFoundError):
        service.send_message("owner-1", 404, "hi")
    with pytest.raises(ValueError):
        service.send_message("owner-1", conversation.id, "   ")
    assert ledger.list_messages(conversation.id) == []


def test_cancel_marks_processing_messages(ledger, store, runs, project, event_bus) -> None:
    service = make_service(ledger, store, runs, ScriptedModel([[text("x")]]), event_bus)
    conversation = ledger.create_conversation(project.id, "Chat")
    orphan = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")

    assert service.cancel("owner-1", project.id) == {orphan.id}
    assert ledger.get_message(orphan.id).status == MessageStatus.CANCELLED


def test_shutdown_settles_interrupted_runs(ledger, store, runs, project, event_bus) -> None:
    service = make_service(
        ledger, store, runs, ScriptedModel([[text("too late")]]), event_bus, settle_delay_seconds=30
    )
    conversation = ledger.create_conversation(project.id, "Chat")
    result = service.send_message("owner-1", conversation.id, "hi")
    message_id = result.assistant_message.id

    assert service.shutdown(timeout=5) == {message_id}

    stored = ledger.get_message(message_id)
    assert (stored.status, stored.content) == (MessageStatus.CANCELLED, "")
    assert runs.get(message_id).outcome == RunOutcome.CANCELLED
    assert service.shutdown(timeout=5) == set()


def test_create_project_with_prompt(ledger, store, runs, isolated_db, event_bus) -> None:
    titles = FakeTitleGenerator(title="Todo App")
    service = make_service(
        ledger, store, runs, ScriptedModel([[text("Project scaffolded")]]), event_bus, title_generator=titles
    )

    start = service.create_project_with_prompt("owner-9", "build a todo app")

    assert re.fullmatch(r"[a-z]+-[a-z]+-[a-z]+", start.project.name)
    assert start.project.owner_id == "owner-9"
    assert runs.wait(start.assistant_message.id, timeout=10)
    messages = ledger.list_messages(start.conversation.id)
    assert [(message.role, message.content) for message in messages] == [
        (MessageRole.USER, "build a todo app"),
        (MessageRole.ASSISTANT, "Project scaffolded"),
    ]
    assert ledger.get_conversation(start.conversation.id).title == "Todo App"
    assert Project.get_by_id(start.project.id) is not None


def test_random_project_name_is_deterministic_with_seed() -> None:
    assert random_project_name(random.Random(7)) == random_project_name(random.Random(7))
    assert random_project_name().count("-") == 2
