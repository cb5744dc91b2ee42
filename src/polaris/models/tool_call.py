"""Persistence helpers for auditing tool executions of agent runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from polaris.database import get_connection, parse_timestamp


@dataclass(slots=True)
class ToolCallLog:
    """Represents a single tool execution for auditing."""

    id: Optional[int]
    run_id: Optional[int]
    project_id: Optional[int]
    tool_name: str
    tool_input: str | None
    tool_output: str | None
    success: bool
    execution_time_ms: float | None
    created_at: Optional[datetime] = None

    @staticmethod
    def record(
        *,
        run_id: Optional[int],
        project_id: Optional[int],
        tool_name: str,
        tool_input: str | None,
        tool_output: str | None,
        success: bool,
        execution_time_ms: float | None,
    ) -> "ToolCallLog":
        """Persist a tool call entry and return the stored record."""
        with get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO tool_calls (
                    run_id,
                    project_id,
                    tool_name,
                    tool_input,
                    tool_output,
                    success,
                    execution_time_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    project_id,
                    tool_name,
                    tool_input,
                    tool_output,
                    1 if success else 0,
                    execution_time_ms,
                ),
            )
            tool_call_id = cursor.lastrowid
            conn.commit()
        return ToolCallLog.get_by_id(tool_call_id)  # type: ignore[arg-type,return-value]

    @staticmethod
    def get_by_id(identifier: int) -> Optional["ToolCallLog"]:
        """Load a tool call entry by primary key."""
        with get_connection() as conn:
            row = conn.execute(
                """
                SELECT id, run_id, project_id, tool_name, tool_input, tool_output,
                       success, execution_time_ms, created_at
                FROM tool_calls
                WHERE id = ?
                """,
                (identifier,),
            ).fetchone()
        if not row:
            return None
        return ToolCallLog._from_row(row)

    @staticmethod
    def get_by_run(run_id: int) -> list["ToolCallLog"]:
        """Load every tool call of a run in execution order."""
        with get_connection() as conn:
            rows = conn.execute(
                """
                SELECT id, run_id, project_id, tool_name, tool_input, tool_output,
                       success, execution_time_ms, created_at
                FROM tool_calls
                WHERE run_id = ?
                ORDER BY id ASC
                """,
                (run_id,),
            ).fetchall()
        return [ToolCallLog._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row: Any) -> "ToolCallLog":
        """Convert a sqlite row into a ToolCallLog."""
        return ToolCallLog(
            id=row["id"],
            run_id=row["run_id"],
            project_id=row["project_id"],
            tool_name=row["tool_name"],
            tool_input=row["tool_input"],
            tool_output=row["tool_output"],
            success=bool(row["success"]),
            execution_time_ms=row["execution_time_ms"],
            created_at=parse_timestamp(row["created_at"]),
        )


__all__ = ["ToolCallLog"]
