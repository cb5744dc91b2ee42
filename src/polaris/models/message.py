"""
Message model for managing individual messages and CRUD operations.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from dataclasses import dataclass

from ..database import NOW_SQL, get_connection, parse_timestamp

logger = logging.getLogger(__name__)

_COLUMNS = "id, conversation_id, project_id, role, content, status, created_at"


class MessageRole:
    """Constants for supported message roles."""

    USER = "user"
    ASSISTANT = "assistant"
    _ALL = frozenset({USER, ASSISTANT})

    @classmethod
    def validate(cls, role: str) -> None:
        """Ensure the provided role is supported."""
        if role not in cls._ALL:
            allowed = ", ".join(sorted(cls._ALL))
            raise ValueError(f"Invalid role: {role}. Must be one of: {allowed}")


class MessageStatus:
    """Constants for assistant message processing status."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    _ALL = frozenset({PROCESSING, COMPLETED, CANCELLED})
    TERMINAL = frozenset({COMPLETED, CANCELLED})

    @classmethod
    def validate(cls, status: Optional[str]) -> None:
        """Ensure the provided status is supported (None is allowed)."""
        if status is not None and status not in cls._ALL:
            allowed = ", ".join(sorted(cls._ALL))
            raise ValueError(f"Invalid status: {status}. Must be one of: {allowed}")


@dataclass
class Message:
    """
    Represents a single message in a conversation.

    Attributes:
        id: Unique message identifier
        conversation_id: ID of the parent conversation
        project_id: ID of the owning project (denormalized for cancellation)
        role: Message role ('user' or 'assistant')
        content: Message content/text
        status: Processing status (assistant messages only)
        created_at: Timestamp of creation
    """

    id: Optional[int]
    conversation_id: int
    project_id: int
    role: str
    content: str
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        """Validate role and status after initialization."""
        MessageRole.validate(self.role)
        MessageStatus.validate(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status in MessageStatus.TERMINAL

    @staticmethod
    def create(
        conversation_id: int,
        project_id: int,
        role: str,
        content: str,
        status: Optional[str] = None,
    ) -> 'Message':
        """
        Create a new message and bump the conversation's timestamp.

        Args:
            conversation_id: Parent conversation ID
            project_id: Owning project ID
            role: Message role ('user' or 'assistant')
            content: Message content
            status: Optional processing status

        Returns:
            Message instance with assigned ID

        Raises:
            ValueError: If role or status is invalid
        """
        MessageRole.validate(role)
        MessageStatus.validate(status)

        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO messages (conversation_id, project_id, role, content, status)
                VALUES (?, ?, ?, ?, ?)
            """, (conversation_id, project_id, role, content, status))

            message_id = cursor.lastrowid

            cursor.execute(
                f"UPDATE conversations SET updated_at = {NOW_SQL} WHERE id = ?",
                (conversation_id,),
            )

            conn.commit()

        logger.info("Created %s message ID %s in conversation %s", role, message_id, conversation_id)

        return Message.get_by_id(message_id)

    @staticmethod
    def get_by_id(message_id: int) -> Optional['Message']:
        """
        Retrieve a message by ID.

        Returns:
            Message instance if found, None otherwise
        """
        with get_connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM messages WHERE id = ?",
                (message_id,),
            ).fetchone()

        if row:
            return Message._from_row(row)
        return None

    @staticmethod
    def get_by_conversation(conversation_id: int) -> List['Message']:
        """Retrieve all messages of a conversation in chronological order."""
        with get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM messages WHERE conversation_id = ? ORDER BY id ASC",
                (conversation_id,),
            ).fetchall()

        return [Message._from_row(row) for row in rows]

    @staticmethod
    def get_recent(conversation_id: int, limit: int) -> List['Message']:
        """
        Retrieve the newest ``limit`` messages, returned oldest first.

        Args:
            conversation_id: The conversation ID to filter by
            limit: Window size
        """
        if limit <= 0:
            return []

        with get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE conversation_id = ?
                ORDER BY id DESC
                LIMIT ?
                """,
                (conversation_id, int(limit)),
            ).fetchall()

        return [Message._from_row(row) for row in reversed(rows)]

    @staticmethod
    def get_by_project_status(project_id: int, status: str) -> List['Message']:
        """Retrieve every message of a project with the given status."""
        MessageStatus.validate(status)
        with get_connection() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM messages WHERE project_id = ? AND status = ? ORDER BY id ASC",
                (project_id, status),
            ).fetchall()

        return [Message._from_row(row) for row in rows]

    @staticmethod
    def compare_and_set(
        message_id: int,
        *,
        expected_status: Optional[str],
        status: str,
        content: Optional[str] = None,
    ) -> bool:
        """
        Atomically move a message from ``expected_status`` to ``status``.

        When ``content`` is given it is written in the same statement. Returns
        False, leaving the row untouched, when the stored status differs.
        """
        MessageStatus.validate(status)
        assignments = "status = ?"
        params: list[Any] = [status]
        if content is not None:
            assignments += ", content = ?"
            params.append(content)
        params.extend([message_id, expected_status])

        with get_connection() as conn:
            cursor = conn.execute(
                f"UPDATE messages SET {assignments} WHERE id = ? AND status IS ? AND role = 'assistant'",
                params,
            )
            conn.commit()
            applied = cursor.rowcount > 0

        return applied

    @staticmethod
    def _from_row(row: Any) -> 'Message':
        """
        Create a Message instance from a database row.

        Args:
            row: sqlite3.Row object from query result
        """
        return Message(
            id=row['id'],
            conversation_id=row['conversation_id'],
            project_id=row['project_id'],
            role=row['role'],
            content=row['content'],
            status=row['status'],
            created_at=parse_timestamp(row['created_at']),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert message to dictionary representation.

        Returns:
            Dict with all message fields
        """
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'project_id': self.project_id,
            'role': self.role,
            'content': self.content,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
