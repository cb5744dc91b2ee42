"""
Conversation model for managing conversation threads and CRUD operations.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Optional, List, Dict, Any
from dataclasses import dataclass

from ..config import DEFAULT_CONVERSATION_TITLE
from ..database import NOW_SQL, get_connection, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class Conversation:
    """
    Represents a conversation thread in a project.

    Attributes:
        id: Unique conversation identifier
        project_id: ID of the owning project
        title: Conversation title; the default sentinel until one is generated
        created_at: Timestamp of creation
        updated_at: Timestamp of last update
    """

    id: Optional[int]
    project_id: int
    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_default_title(self) -> bool:
        return self.title == DEFAULT_CONVERSATION_TITLE

    @staticmethod
    def create(
        project_id: int,
        title: str = DEFAULT_CONVERSATION_TITLE,
    ) -> 'Conversation':
        """
        Create a new conversation in the database.

        Args:
            project_id: Owning project ID
            title: Conversation title (defaults to the untitled sentinel)

        Returns:
            Conversation instance with assigned ID
        """
        sql = "INSERT INTO conversations (project_id, title) VALUES (?, ?)"
        with get_connection() as conn:
            conversation_id = conn.execute(sql, (project_id, title)).lastrowid
            conn.commit()

        logger.info("Created conversation ID %s in project %s", conversation_id, project_id)
        return Conversation.get_by_id(conversation_id)

    @staticmethod
    def get_by_id(conversation_id: int) -> Optional['Conversation']:
        """
        Retrieve a conversation by ID.

        Returns:
            Conversation instance if found, None otherwise
        """
        with get_connection() as conn:
            row = Conversation._select(conn, conversation_id)

        if row:
            return Conversation._from_row(row)
        return None

    @staticmethod
    def get_by_project(project_id: int, limit: Optional[int] = None) -> List['Conversation']:
        """
        Retrieve conversations of a project, most recently updated first.

        Args:
            project_id: The project ID to filter by
            limit: Optional limit on number of results
        """
        query = """
            SELECT id, project_id, title, created_at, updated_at
            FROM conversations
            WHERE project_id = ?
            ORDER BY updated_at DESC, id DESC
        """
        params: tuple = (project_id,)
        if limit:
            query += " LIMIT ?"
            params = (project_id, int(limit))

        with get_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [Conversation._from_row(row) for row in rows]

    def update_title(self, title: str) -> None:
        """
        Set the conversation title and bump its timestamp.

        Raises:
            ValueError: If conversation has no ID (not saved to database)
        """
        if self.id is None:
            raise ValueError("Cannot update conversation without ID")

        with get_connection() as conn:
            conn.execute(
                f"UPDATE conversations SET title = ?, updated_at = {NOW_SQL} WHERE id = ?",
                (title, self.id),
            )
            conn.commit()
            row = Conversation._select(conn, self.id)

        logger.info("Updated title of conversation ID %s", self.id)
        self.title = title
        if row:
            self.updated_at = parse_timestamp(row['updated_at'])

    @staticmethod
    def _select(conn: sqlite3.Connection, conversation_id: int) -> Any:
        return conn.execute("""
            SELECT id, project_id, title, created_at, updated_at
            FROM conversations
            WHERE id = ?
        """, (conversation_id,)).fetchone()

    @staticmethod
    def _from_row(row: Any) -> 'Conversation':
        """
        Create a Conversation instance from a database row.

        Args:
            row: sqlite3.Row object from query result
        """
        return Conversation(
            id=row['id'],
            project_id=row['project_id'],
            title=row['title'],
            created_at=parse_timestamp(row['created_at']),
            updated_at=parse_timestamp(row['updated_at']),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert conversation to dictionary representation.

        Returns:
            Dict with all conversation fields
        """
        return {
            'id': self.id,
            'project_id': self.project_id,
            'title': self.title,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
