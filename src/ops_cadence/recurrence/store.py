# src/ops_cadence/recurrence/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

from ..core.errors import ConflictError, MalformedRecord
from ..core.records import parse_date, parse_definition, parse_timestamp
from .models import RecurrencePattern, RecurringTaskDefinition, TaskOccurrence

logger = logging.getLogger(__name__)

# next_due_at is stored as REAL epoch seconds; compare-and-set tolerates float round-trips.
_DUE_EPSILON = 1e-3


class RecurrenceStore:
    """
    SQLite store for recurring definitions and their generated occurrences.

    Definitions and occurrences share one `tasks` table, as in the surrounding task
    system: an occurrence is a task row whose parent_id points at its definition.

    Idempotent generation is enforced here, not in the engine:
    - next_due_at is advanced with a compare-and-set UPDATE,
    - UNIQUE(parent_id, cycle_date) rejects a second occurrence for the same cycle,
    - both happen in one BEGIN IMMEDIATE transaction.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "cadence.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("RecurrenceStore ready db=%s definitions=%s", self._db_path, self.count_definitions())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL DEFAULT '',
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    recurrence_pattern TEXT,
                    next_due_at REAL,
                    organization_id TEXT,
                    assigned_user_ids TEXT NOT NULL DEFAULT '[]',
                    parent_id INTEGER REFERENCES tasks(id),
                    cycle_date TEXT,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_recurring_due "
                "ON tasks(is_recurring, next_due_at) WHERE parent_id IS NULL"
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_tasks_parent_cycle "
                "ON tasks(parent_id, cycle_date) WHERE parent_id IS NOT NULL"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _ids_to_str(user_ids: tuple[str, ...] | list[str] | None) -> str:
        return json.dumps(list(user_ids or []), ensure_ascii=False)

    @staticmethod
    def _row_to_occurrence(row: sqlite3.Row) -> TaskOccurrence:
        return TaskOccurrence(
            id=int(row["id"]),
            parent_id=int(row["parent_id"]),
            cycle_date=parse_date(row["cycle_date"]),
            created_at=parse_timestamp(float(row["created_at"])),
            title=str(row["title"] or ""),
            organization_id=row["organization_id"],
            assigned_user_ids=tuple(json.loads(row["assigned_user_ids"] or "[]")),
        )

    # ---- public API ----

    def count_definitions(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks WHERE parent_id IS NULL").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_definition(
        self,
        *,
        title: str,
        pattern: RecurrencePattern,
        next_due_at: datetime,
        organization_id: str | None = None,
        assigned_user_ids: tuple[str, ...] | list[str] = (),
        timezone: str = "UTC",
    ) -> int:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO tasks(
                    title, is_recurring, recurrence_pattern, next_due_at,
                    organization_id, assigned_user_ids, timezone, created_at, updated_at
                )
                VALUES (?, 1, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title.strip(),
                    json.dumps(pattern.to_dict()),
                    next_due_at.timestamp(),
                    organization_id,
                    self._ids_to_str(assigned_user_ids),
                    timezone,
                    now,
                    now,
                ),
            )
            conn.commit()
            if cur.lastrowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            definition_id = int(cur.lastrowid)
            logger.debug(
                "Definition added id=%s pattern=%s next_due_at=%s",
                definition_id,
                pattern.frequency,
                next_due_at.isoformat(),
            )
            return definition_id
        finally:
            conn.close()

    def get_definition(self, definition_id: int) -> RecurringTaskDefinition | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND parent_id IS NULL", (int(definition_id),)
            ).fetchone()
        finally:
            conn.close()
        return parse_definition(row) if row else None

    def find_due_recurring_definitions(
        self,
        now: datetime,
        limit: int = 500,
        *,
        on_malformed: Callable[[MalformedRecord], None] | None = None,
    ) -> list[RecurringTaskDefinition]:
        """
        Recurring parents with next_due_at <= now.

        Generated occurrences (parent_id set) are never candidates.
        A malformed row never hides the rest: it is passed to on_malformed
        (or only logged when no callback is given).
        """
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE is_recurring = 1
                  AND parent_id IS NULL
                  AND next_due_at IS NOT NULL
                  AND next_due_at <= ?
                ORDER BY next_due_at ASC, id ASC
                    LIMIT ?
                """,
                (now.timestamp(), int(limit)),
            ).fetchall()
        finally:
            conn.close()

        out: list[RecurringTaskDefinition] = []
        for row in rows:
            try:
                out.append(parse_definition(row))
            except MalformedRecord as exc:
                logger.warning("Malformed due definition: %s", exc)
                if on_malformed is not None:
                    on_malformed(exc)
        return out

    def create_occurrence_and_advance(
        self,
        definition_id: int,
        *,
        cycle_date: date,
        expected_next_due_at: datetime,
        next_due_at: datetime,
    ) -> int:
        now = time.time()
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cur = conn.execute(
                """
                UPDATE tasks
                SET next_due_at = ?, updated_at = ?
                WHERE id = ?
                  AND parent_id IS NULL
                  AND is_recurring = 1
                  AND ABS(next_due_at - ?) < ?
                """,
                (
                    next_due_at.timestamp(),
                    now,
                    int(definition_id),
                    expected_next_due_at.timestamp(),
                    _DUE_EPSILON,
                ),
            )
            if cur.rowcount != 1:
                conn.rollback()
                raise ConflictError(f"definition {definition_id} already advanced past {expected_next_due_at.isoformat()}")

            parent = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(definition_id),)).fetchone()
            try:
                cur = conn.execute(
                    """
                    INSERT INTO tasks(
                        title, is_recurring, organization_id, assigned_user_ids,
                        parent_id, cycle_date, timezone, created_at, updated_at
                    )
                    VALUES (?, 0, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        parent["title"],
                        parent["organization_id"],
                        parent["assigned_user_ids"],
                        int(definition_id),
                        cycle_date.isoformat(),
                        parent["timezone"],
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise ConflictError(
                    f"occurrence for definition {definition_id} on {cycle_date.isoformat()} already exists"
                ) from exc

            conn.commit()
            if cur.lastrowid is None:
                raise RuntimeError("SQLite did not return lastrowid for occurrence insert")
            occurrence_id = int(cur.lastrowid)
            logger.debug(
                "Occurrence created id=%s parent=%s cycle=%s next_due_at=%s",
                occurrence_id,
                definition_id,
                cycle_date.isoformat(),
                next_due_at.isoformat(),
            )
            return occurrence_id
        finally:
            conn.close()

    def advance_next_due(
        self,
        definition_id: int,
        *,
        expected_next_due_at: datetime,
        next_due_at: datetime,
    ) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET next_due_at = ?, updated_at = ?
                WHERE id = ?
                  AND parent_id IS NULL
                  AND ABS(next_due_at - ?) < ?
                """,
                (
                    next_due_at.timestamp(),
                    time.time(),
                    int(definition_id),
                    expected_next_due_at.timestamp(),
                    _DUE_EPSILON,
                ),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def list_occurrences(self, parent_id: int) -> list[TaskOccurrence]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE parent_id = ? ORDER BY cycle_date ASC, id ASC",
                (int(parent_id),),
            ).fetchall()
            return [self._row_to_occurrence(r) for r in rows]
        finally:
            conn.close()

    def get_occurrence(self, occurrence_id: int) -> TaskOccurrence | None:
        conn = self._get_conn()
        try:
            row: Any = conn.execute(
                "SELECT * FROM tasks WHERE id = ? AND parent_id IS NOT NULL", (int(occurrence_id),)
            ).fetchone()
            return self._row_to_occurrence(row) if row else None
        finally:
            conn.close()
