"""Unit tests for the conversation ledger and the message status machine."""

from __future__ import annotations

import time

import pytest

from polaris.config import DEFAULT_CONVERSATION_TITLE
from polaris.events import MessageStatusChanged
from polaris.exceptions import NotFoundError
from polaris.models import Message, MessageRole, MessageStatus
from polaris.services.ledger import ConversationLedger


def test_new_conversation_uses_default_title(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)

    assert conversation.title == DEFAULT_CONVERSATION_TITLE
    assert conversation.has_default_title
    assert ledger.get_conversation(conversation.id).project_id == project.id


def test_update_title_bumps_timestamp(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    time.sleep(0.01)

    updated = ledger.update_title(conversation.id, "Todo App Setup")

    assert updated.title == "Todo App Setup"
    assert updated.updated_at > conversation.updated_at


def test_update_title_of_missing_conversation(ledger: ConversationLedger) -> None:
    with pytest.raises(NotFoundError):
        ledger.update_title(404, "x")


def test_assistant_messages_start_processing(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)

    user = ledger.append_message(conversation.id, MessageRole.USER, "hello")
    assistant = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")

    assert user.status is None
    assert assistant.status == MessageStatus.PROCESSING
    assert assistant.project_id == project.id


def test_append_bumps_conversation_timestamp(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    time.sleep(0.01)

    ledger.append_message(conversation.id, MessageRole.USER, "hi")

    assert ledger.get_conversation(conversation.id).updated_at > conversation.updated_at


def test_append_to_missing_conversation(ledger: ConversationLedger) -> None:
    with pytest.raises(NotFoundError):
        ledger.append_message(99, MessageRole.USER, "hi")


def test_content_write_completes_processing_message(ledger: ConversationLedger, project, events) -> None:
    conversation = ledger.create_conversation(project.id)
    message = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")

    assert ledger.set_message_content(message.id, "done") is True

    stored = ledger.get_message(message.id)
    assert (stored.status, stored.content) == (MessageStatus.COMPLETED, "done")
    assert events.of_type(MessageStatusChanged)[-1].status == MessageStatus.COMPLETED


def test_cancelled_message_keeps_its_status(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    message = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")

    assert ledger.set_message_status(message.id, MessageStatus.CANCELLED) is True
    assert ledger.set_message_content(message.id, "late answer") is False

    stored = ledger.get_message(message.id)
    assert stored.status == MessageStatus.CANCELLED
    assert stored.content == ""


def test_terminal_states_never_change(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    message = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")
    ledger.set_message_content(message.id, "answer")

    assert ledger.set_message_status(message.id, MessageStatus.CANCELLED) is False
    assert ledger.set_message_status(message.id, MessageStatus.PROCESSING) is False
    assert ledger.set_message_content(message.id, "again") is False
    assert ledger.get_message(message.id).content == "answer"


def test_processing_can_only_be_forced_on_statusless_assistant(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    user = ledger.append_message(conversation.id, MessageRole.USER, "hi")
    bare = Message.create(conversation.id, project.id, MessageRole.ASSISTANT, "", status=None)

    assert ledger.set_message_status(user.id, MessageStatus.PROCESSING) is False
    assert ledger.set_message_status(bare.id, MessageStatus.PROCESSING) is True
    assert ledger.get_message(bare.id).status == MessageStatus.PROCESSING


def test_completed_is_not_a_status_transition(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    message = ledger.append_message(conversation.id, MessageRole.ASSISTANT, "")

    with pytest.raises(ValueError):
        ledger.set_message_status(message.id, MessageStatus.COMPLETED)


def test_recent_messages_are_the_newest_oldest_first(ledger: ConversationLedger, project) -> None:
    conversation = ledger.create_conversation(project.id)
    for index in range(15):
        ledger.append_message(conversation.id, MessageRole.USER, f"m{index}")

    recent = ledger.recent_messages(conversation.id, limit=10)

    assert [message.content for message in recent] == [f"m{index}" for index in range(5, 15)]
    assert ledger.recent_messages(conversation.id, limit=0) == []


def test_processing_messages_are_scoped_to_project(ledger: ConversationLedger, project) -> None:
    from polaris.models import Project

    other = Project.create("owner-2", "jolly-plum-ibis")
    mine = ledger.create_conversation(project.id)
    theirs = ledger.create_conversation(other.id)
    first = ledger.append_message(mine.id, MessageRole.ASSISTANT, "")
    second = ledger.append_message(mine.id, MessageRole.ASSISTANT, "")
    ledger.append_message(theirs.id, MessageRole.ASSISTANT, "")
    ledger.set_message_content(second.id, "done")

    assert [message.id for message in ledger.processing_messages(project.id)] == [first.id]
