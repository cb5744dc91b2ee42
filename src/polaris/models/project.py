"""
Project model for project metadata and CRUD operations.
"""

import logging
import sqlite3
from datetime import datetime
from typing import Optional, List, Dict, Any
from dataclasses import dataclass

from ..database import NOW_SQL, get_connection, parse_timestamp

logger = logging.getLogger(__name__)


class ImportStatus:
    """Constants for source-control import progress."""

    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"
    _ALL = frozenset({IMPORTING, COMPLETED, FAILED})


class ExportStatus:
    """Constants for source-control export progress."""

    EXPORTING = "exporting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    _ALL = frozenset({EXPORTING, COMPLETED, FAILED, CANCELLED})


@dataclass
class Project:
    """
    Represents a project owned by a single user.

    A project owns one file tree and any number of conversations. Its
    ``updated_at`` timestamp is bumped on every file or folder change.

    Attributes:
        id: Unique project identifier
        owner_id: Identity of the owning user
        name: Display name
        import_status: Optional import progress marker
        export_status: Optional export progress marker
        export_repo_url: Repository URL of the last export
        created_at: Timestamp of creation
        updated_at: Timestamp of last update
    """

    id: Optional[int]
    owner_id: str
    name: str
    import_status: Optional[str] = None
    export_status: Optional[str] = None
    export_repo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @staticmethod
    def create(
        owner_id: str,
        name: str,
        import_status: Optional[str] = None,
    ) -> 'Project':
        """
        Create a new project in the database.

        Args:
            owner_id: Identity of the owning user
            name: Project display name
            import_status: Optional initial import status

        Returns:
            Project instance with assigned ID
        """
        if import_status is not None and import_status not in ImportStatus._ALL:
            raise ValueError(f"Invalid import status: {import_status}")

        sql = "INSERT INTO projects (owner_id, name, import_status) VALUES (?, ?, ?)"
        with get_connection() as conn:
            project_id = conn.execute(sql, (owner_id, name, import_status)).lastrowid
            conn.commit()

        logger.info("Created project: %s (ID: %s)", name, project_id)
        return Project.get_by_id(project_id)

    @staticmethod
    def get_by_id(project_id: int) -> Optional['Project']:
        """
        Retrieve a project by ID.

        Returns:
            Project instance if found, None otherwise
        """
        with get_connection() as conn:
            row = Project._select(conn, project_id)

        if row:
            return Project._from_row(row)
        return None

    @staticmethod
    def get_by_owner(owner_id: str) -> List['Project']:
        """Retrieve every project of an owner, most recently updated first."""
        with get_connection() as conn:
            rows = conn.execute("""
                SELECT id, owner_id, name, import_status, export_status,
                       export_repo_url, created_at, updated_at
                FROM projects
                WHERE owner_id = ?
                ORDER BY updated_at DESC, id DESC
            """, (owner_id,)).fetchall()

        return [Project._from_row(row) for row in rows]

    @staticmethod
    def touch(project_id: int, conn: sqlite3.Connection) -> None:
        """Bump the project's updated_at timestamp inside an open transaction."""
        conn.execute(
            f"UPDATE projects SET updated_at = {NOW_SQL} WHERE id = ?",
            (project_id,),
        )

    def update_import_status(self, status: Optional[str]) -> None:
        """Record import progress and bump the timestamp."""
        if status is not None and status not in ImportStatus._ALL:
            raise ValueError(f"Invalid import status: {status}")
        self._patch("import_status = ?", (status,))
        self.import_status = status

    def update_export_status(self, status: Optional[str], repo_url: Optional[str] = None) -> None:
        """Record export progress (and repository URL) and bump the timestamp."""
        if status is not None and status not in ExportStatus._ALL:
            raise ValueError(f"Invalid export status: {status}")
        self._patch("export_status = ?, export_repo_url = ?", (status, repo_url))
        self.export_status = status
        self.export_repo_url = repo_url

    def _patch(self, assignments: str, values: tuple) -> None:
        if self.id is None:
            raise ValueError("Cannot update project without ID")

        with get_connection() as conn:
            conn.execute(
                f"UPDATE projects SET {assignments}, updated_at = {NOW_SQL} WHERE id = ?",
                (*values, self.id),
            )
            conn.commit()
            row = Project._select(conn, self.id)

        logger.info("Updated project ID %s", self.id)
        if row:
            self.updated_at = parse_timestamp(row['updated_at'])

    @staticmethod
    def _select(conn: sqlite3.Connection, project_id: int) -> Any:
        return conn.execute("""
            SELECT id, owner_id, name, import_status, export_status,
                   export_repo_url, created_at, updated_at
            FROM projects
            WHERE id = ?
        """, (project_id,)).fetchone()

    @staticmethod
    def _from_row(row: Any) -> 'Project':
        """
        Create a Project instance from a database row.

        Args:
            row: sqlite3.Row object from query result
        """
        return Project(
            id=row['id'],
            owner_id=row['owner_id'],
            name=row['name'],
            import_status=row['import_status'],
            export_status=row['export_status'],
            export_repo_url=row['export_repo_url'],
            created_at=parse_timestamp(row['created_at']),
            updated_at=parse_timestamp(row['updated_at']),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert project to dictionary representation.

        Returns:
            Dict with all project fields
        """
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'import_status': self.import_status,
            'export_status': self.export_status,
            'export_repo_url': self.export_repo_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
