"""Conversation ledger: conversations, messages and the assistant status machine.

Assistant messages start ``processing`` and move exactly once to ``completed``
or ``cancelled``. Every transition is a compare-and-swap on the stored status,
so a late content write can never resurrect a cancelled message.
"""

from __future__ import annotations

import logging
from typing import Optional

from polaris.config import DEFAULT_CONTEXT_MESSAGE_LIMIT, DEFAULT_CONVERSATION_TITLE
from polaris.event_bus import EventBus, get_event_bus
from polaris.events import MessageStatusChanged
from polaris.exceptions import NotFoundError
from polaris.models import Conversation, Message, MessageRole, MessageStatus

LOGGER = logging.getLogger(__name__)


class ConversationLedger:
    """Owns conversations and messages and guards assistant status transitions."""

    def __init__(self, event_bus: EventBus | None = None) -> None:
        self._event_bus = event_bus or get_event_bus()

    def create_conversation(self, project_id: int, title: str = DEFAULT_CONVERSATION_TITLE) -> Conversation:
        conversation = Conversation.create(project_id, title)
        LOGGER.info("Conversation created | id=%s | project=%s", conversation.id, project_id)
        return conversation

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return Conversation.get_by_id(conversation_id)

    def update_title(self, conversation_id: int, title: str) -> Conversation:
        """Set the conversation title and bump its timestamp."""
        conversation = Conversation.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", {"conversation_id": conversation_id})
        conversation.update_title(title)
        LOGGER.info("Conversation titled | id=%s | title=%s", conversation_id, title)
        return conversation

    def append_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        status: Optional[str] = None,
    ) -> Message:
        """Append a message to a conversation.

        Assistant messages default to ``processing``; user messages carry no
        status.

        Raises:
            NotFoundError: If the conversation does not exist.
        """
        conversation = Conversation.get_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found", {"conversation_id": conversation_id})
        if role == MessageRole.ASSISTANT and status is None:
            status = MessageStatus.PROCESSING
        if role == MessageRole.USER:
            status = None
        return Message.create(conversation_id, conversation.project_id, role, content, status)

    def get_message(self, message_id: int) -> Optional[Message]:
        return Message.get_by_id(message_id)

    def set_message_content(self, message_id: int, content: str) -> bool:
        """Write the final answer and mark the message ``completed``.

        Applies only while the message is still ``processing``; returns whether
        the write happened.
        """
        applied = Message.compare_and_set(
            message_id,
            expected_status=MessageStatus.PROCESSING,
            status=MessageStatus.COMPLETED,
            content=content,
        )
        if applied:
            LOGGER.info("Message completed | id=%s | chars=%d", message_id, len(content))
            self._notify(message_id, MessageStatus.COMPLETED)
        else:
            LOGGER.info("Message content write skipped, message no longer processing | id=%s", message_id)
        return applied

    def set_message_status(self, message_id: int, status: str) -> bool:
        """Move an assistant message to ``status``.

        ``cancelled`` applies only from ``processing``; ``processing`` applies
        only to an assistant message without a status. Terminal messages never
        change and the call returns False.
        """
        MessageStatus.validate(status)
        if status == MessageStatus.PROCESSING:
            expected: Optional[str] = None
        elif status == MessageStatus.CANCELLED:
            expected = MessageStatus.PROCESSING
        else:
            raise ValueError("Use set_message_content to complete a message")

        applied = Message.compare_and_set(message_id, expected_status=expected, status=status)
        if applied:
            LOGGER.info("Message status changed | id=%s | status=%s", message_id, status)
            self._notify(message_id, status)
        else:
            LOGGER.debug("Message status unchanged | id=%s | requested=%s", message_id, status)
        return applied

    def recent_messages(self, conversation_id: int, limit: int = DEFAULT_CONTEXT_MESSAGE_LIMIT) -> list[Message]:
        """The most recent ``limit`` messages, oldest first."""
        return Message.get_recent(conversation_id, limit)

    def list_messages(self, conversation_id: int) -> list[Message]:
        return Message.get_by_conversation(conversation_id)

    def processing_messages(self, project_id: int) -> list[Message]:
        """Every assistant message of the project still ``processing``."""
        return Message.get_by_project_status(project_id, MessageStatus.PROCESSING)

    def _notify(self, message_id: int, status: str) -> None:
        message = Message.get_by_id(message_id)
        project_id = message.project_id if message else None
        self._event_bus.emit(MessageStatusChanged(message_id=message_id, status=status, project_id=project_id))


__all__ = ["ConversationLedger"]
