"""
Database module for projects, file trees, conversations, and agent runs.

This module provides SQLite database initialization, connection management,
and schema creation. Every entity is stored in a flat table keyed by integer
identity; secondary indexes back the lookups the core relies on:

- files by (project_id, parent_id)
- messages by (project_id, status) and by conversation_id
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Millisecond-resolution timestamp so consecutive writes stay ordered.
NOW_SQL = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

EXPECTED_TABLES = frozenset({
    "projects",
    "files",
    "conversations",
    "messages",
    "run_steps",
    "tool_calls",
})


def get_data_dir() -> Path:
    """
    Get the Polaris data directory.

    Honors the POLARIS_HOME environment variable and falls back to ~/.polaris.
    """
    override = os.getenv("POLARIS_HOME", "").strip()
    data_dir = Path(override) if override else Path.home() / ".polaris"
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_database_path() -> Path:
    """
    Get the path to the Polaris database file.

    Returns:
        Path object pointing to <data dir>/polaris.db
    """
    return get_data_dir() / "polaris.db"


@contextmanager
def get_connection():
    """
    Context manager for database connections.

    Yields:
        sqlite3.Connection: Database connection with row factory enabled

    Example:
        >>> with get_connection() as conn:
        ...     cursor = conn.cursor()
        ...     cursor.execute("SELECT * FROM projects")
    """
    db_path = get_database_path()
    # Agent runs write from worker threads; wait on locks instead of failing.
    conn = sqlite3.connect(str(db_path), timeout=30.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction():
    """
    Context manager for a write transaction holding the database write lock.

    The lock is taken up front (BEGIN IMMEDIATE) so that a read-validate-write
    sequence, such as a sibling name check followed by an insert, is atomic
    with respect to other writers.
    """
    with get_connection() as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()


def initialize_database() -> None:
    """
    Initialize the database schema.

    Creates all required tables if they don't exist:
    - projects: Project metadata and import/export status
    - files: File and folder nodes of every project tree
    - conversations: Conversation threads within projects
    - messages: User and assistant messages with processing status
    - run_steps: Checkpoints of completed durable steps per agent run
    - tool_calls: Audit log of tool executions

    This function is idempotent and safe to call multiple times.
    """
    db_path = get_database_path()

    logger.info("Initializing database at %s", db_path)

    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS projects (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                import_status TEXT CHECK(import_status IN ('importing', 'completed', 'failed')),
                export_status TEXT CHECK(export_status IN ('exporting', 'completed', 'failed', 'cancelled')),
                export_repo_url TEXT,
                created_at TIMESTAMP DEFAULT ({NOW_SQL}),
                updated_at TIMESTAMP DEFAULT ({NOW_SQL})
            )
        """)

        # parent_id is validated procedurally; no foreign key so that a
        # post-order delete racing a concurrent insert never aborts midway.
        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_id INTEGER NOT NULL,
                parent_id INTEGER,
                name TEXT NOT NULL CHECK(length(name) > 0),
                kind TEXT NOT NULL CHECK(kind IN ('file', 'folder')),
                content TEXT,
                blob_ref TEXT,
                updated_at TIMESTAMP DEFAULT ({NOW_SQL}),
                FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS conversations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                project_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT ({NOW_SQL}),
                updated_at TIMESTAMP DEFAULT ({NOW_SQL}),
                FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id INTEGER NOT NULL,
                project_id INTEGER NOT NULL,
                role TEXT NOT NULL CHECK(role IN ('user', 'assistant')),
                content TEXT NOT NULL,
                status TEXT CHECK(status IN ('processing', 'completed', 'cancelled')),
                created_at TIMESTAMP DEFAULT ({NOW_SQL}),
                FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS run_steps (
                run_id INTEGER NOT NULL,
                step_name TEXT NOT NULL,
                result TEXT,
                created_at TIMESTAMP DEFAULT ({NOW_SQL}),
                PRIMARY KEY (run_id, step_name)
            )
        """)

        cursor.execute(f"""
            CREATE TABLE IF NOT EXISTS tool_calls (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id INTEGER,
                project_id INTEGER,
                tool_name TEXT NOT NULL,
                tool_input TEXT,
                tool_output TEXT,
                success INTEGER NOT NULL,
                execution_time_ms REAL,
                created_at TIMESTAMP DEFAULT ({NOW_SQL})
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_files_project_parent
            ON files(project_id, parent_id)
        """)

        # Backstop for sibling uniqueness; root nodes share parent key 0.
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_files_unique_sibling
            ON files(project_id, COALESCE(parent_id, 0), name, kind)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_conversations_project_id
            ON conversations(project_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_project_status
            ON messages(project_id, status)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_conversation_id
            ON messages(conversation_id)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_tool_calls_run_id
            ON tool_calls(run_id)
        """)

        conn.commit()
        logger.info("Database schema initialized successfully")


def reset_database() -> None:
    """
    Drop all tables and reinitialize the database.

    WARNING: This will delete all data! Use only for testing or fresh starts.
    """
    logger.warning("Resetting database - all data will be lost!")

    with get_connection() as conn:
        cursor = conn.cursor()

        cursor.execute("DROP TABLE IF EXISTS tool_calls")
        cursor.execute("DROP TABLE IF EXISTS run_steps")
        cursor.execute("DROP TABLE IF EXISTS messages")
        cursor.execute("DROP TABLE IF EXISTS conversations")
        cursor.execute("DROP TABLE IF EXISTS files")
        cursor.execute("DROP TABLE IF EXISTS projects")

        conn.commit()

    initialize_database()
    logger.info("Database reset complete")


def check_database_health() -> bool:
    """
    Check if the database is accessible and has the expected schema.

    Returns:
        bool: True if database is healthy, False otherwise
    """
    try:
        with get_connection() as conn:
            cursor = conn.cursor()
            placeholders = ", ".join("?" for _ in EXPECTED_TABLES)
            cursor.execute(
                f"SELECT name FROM sqlite_master WHERE type='table' AND name IN ({placeholders})",
                tuple(EXPECTED_TABLES),
            )
            tables = {row[0] for row in cursor.fetchall()}
    except sqlite3.Error as e:
        logger.error("Database health check failed: %s", e)
        return False

    missing = EXPECTED_TABLES - tables
    if missing:
        logger.error("Database health check failed. Missing tables: %s", sorted(missing))
        return False

    logger.info("Database health check passed")
    return True


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Convert a stored timestamp string into a datetime (None passes through)."""
    return datetime.fromisoformat(value) if value else None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    initialize_database()
    check_database_health()
