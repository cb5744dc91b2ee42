"""
FileNode model: rows of the per-project file tree.

Nodes live in a single flat table; the tree shape comes from ``parent_id``
references. All helpers here take an open connection so that the tree store
can group a validation and its write into one transaction.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..database import NOW_SQL, parse_timestamp

_COLUMNS = "id, project_id, parent_id, name, kind, content, blob_ref, updated_at"


class NodeKind:
    """Constants for the two node kinds."""

    FILE = "file"
    FOLDER = "folder"
    _ALL = frozenset({FILE, FOLDER})

    @classmethod
    def validate(cls, kind: str) -> None:
        """Ensure the provided kind is supported."""
        if kind not in cls._ALL:
            raise ValueError(f"Invalid node kind: {kind}. Must be one of: file, folder")


@dataclass
class FileNode:
    """
    A file or folder in a project tree.

    Attributes:
        id: Unique node identifier
        project_id: Owning project
        parent_id: Parent folder, or None for the project root
        name: Non-empty node name
        kind: ``file`` or ``folder``
        content: Text content (files only; None for folders and binary files)
        blob_ref: Reference into blob storage for binary files
        updated_at: Timestamp of the last change
    """

    id: int
    project_id: int
    parent_id: Optional[int]
    name: str
    kind: str
    content: Optional[str] = None
    blob_ref: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def is_folder(self) -> bool:
        return self.kind == NodeKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind == NodeKind.FILE

    @staticmethod
    def fetch(conn: sqlite3.Connection, node_id: int) -> Optional['FileNode']:
        """Load a node by ID, or None when it does not exist."""
        row = conn.execute(
            f"SELECT {_COLUMNS} FROM files WHERE id = ?",
            (node_id,),
        ).fetchone()
        return FileNode._from_row(row) if row else None

    @staticmethod
    def fetch_children(
        conn: sqlite3.Connection,
        project_id: int,
        parent_id: Optional[int],
    ) -> List['FileNode']:
        """Load the direct children of ``parent_id`` (root when None)."""
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM files WHERE project_id = ? AND parent_id IS ?",
            (project_id, parent_id),
        ).fetchall()
        return [FileNode._from_row(row) for row in rows]

    @staticmethod
    def fetch_project(conn: sqlite3.Connection, project_id: int) -> List['FileNode']:
        """Load every node of a project."""
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM files WHERE project_id = ?",
            (project_id,),
        ).fetchall()
        return [FileNode._from_row(row) for row in rows]

    @staticmethod
    def insert(
        conn: sqlite3.Connection,
        *,
        project_id: int,
        parent_id: Optional[int],
        name: str,
        kind: str,
        content: Optional[str] = None,
        blob_ref: Optional[str] = None,
    ) -> 'FileNode':
        """Insert a node row and return it."""
        NodeKind.validate(kind)
        node_id = conn.execute(
            """
            INSERT INTO files (project_id, parent_id, name, kind, content, blob_ref)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (project_id, parent_id, name, kind, content, blob_ref),
        ).lastrowid
        return FileNode.fetch(conn, node_id)  # type: ignore[return-value]

    @staticmethod
    def set_name(conn: sqlite3.Connection, node_id: int, name: str) -> None:
        conn.execute(
            f"UPDATE files SET name = ?, updated_at = {NOW_SQL} WHERE id = ?",
            (name, node_id),
        )

    @staticmethod
    def set_content(conn: sqlite3.Connection, node_id: int, content: str) -> None:
        conn.execute(
            f"UPDATE files SET content = ?, updated_at = {NOW_SQL} WHERE id = ?",
            (content, node_id),
        )

    @staticmethod
    def remove(conn: sqlite3.Connection, node_id: int) -> bool:
        """Delete a single row; returns False when it was already gone."""
        return conn.execute("DELETE FROM files WHERE id = ?", (node_id,)).rowcount > 0

    @staticmethod
    def _from_row(row: Any) -> 'FileNode':
        return FileNode(
            id=row['id'],
            project_id=row['project_id'],
            parent_id=row['parent_id'],
            name=row['name'],
            kind=row['kind'],
            content=row['content'],
            blob_ref=row['blob_ref'],
            updated_at=parse_timestamp(row['updated_at']),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert node to dictionary representation."""
        return {
            'id': self.id,
            'project_id': self.project_id,
            'parent_id': self.parent_id,
            'name': self.name,
            'kind': self.kind,
            'content': self.content,
            'blob_ref': self.blob_ref,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
