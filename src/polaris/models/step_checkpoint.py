"""Persistence of completed durable steps for agent runs."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from polaris.database import get_connection, parse_timestamp


@dataclass(slots=True)
class StepCheckpoint:
    """Result of one durable step, keyed by (run_id, step_name)."""

    run_id: int
    step_name: str
    result: Any
    created_at: Optional[datetime] = None

    @staticmethod
    def load(run_id: int, step_name: str) -> Optional["StepCheckpoint"]:
        """Return the recorded checkpoint, or None if the step never completed."""
        with get_connection() as conn:
            row = conn.execute(
                """
                SELECT run_id, step_name, result, created_at
                FROM run_steps
                WHERE run_id = ? AND step_name = ?
                """,
                (run_id, step_name),
            ).fetchone()
        if not row:
            return None
        return StepCheckpoint._from_row(row)

    @staticmethod
    def record(run_id: int, step_name: str, result: Any) -> "StepCheckpoint":
        """Persist a step result. Results must be JSON serializable."""
        payload = json.dumps(result, ensure_ascii=False)
        try:
            with get_connection() as conn:
                conn.execute(
                    "INSERT INTO run_steps (run_id, step_name, result) VALUES (?, ?, ?)",
                    (run_id, step_name, payload),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Step '{step_name}' already recorded for run {run_id}") from exc
        return StepCheckpoint(run_id=run_id, step_name=step_name, result=result)

    @staticmethod
    def list_for_run(run_id: int) -> list["StepCheckpoint"]:
        """Return every checkpoint of a run in completion order."""
        with get_connection() as conn:
            rows = conn.execute(
                """
                SELECT run_id, step_name, result, created_at
                FROM run_steps
                WHERE run_id = ?
                ORDER BY rowid ASC
                """,
                (run_id,),
            ).fetchall()
        return [StepCheckpoint._from_row(row) for row in rows]

    @staticmethod
    def _from_row(row: Any) -> "StepCheckpoint":
        raw = row["result"]
        return StepCheckpoint(
            run_id=row["run_id"],
            step_name=row["step_name"],
            result=json.loads(raw) if raw is not None else None,
            created_at=parse_timestamp(row["created_at"]),
        )


__all__ = ["StepCheckpoint"]
