# src/ops_cadence/windows/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from datetime import date
from pathlib import Path

from ..core.errors import ConflictError, MalformedRecord
from ..core.records import parse_instance, parse_template
from .models import TERMINAL_STATUSES, ChecklistTemplate, InstanceStatus, ScheduledWindowInstance

logger = logging.getLogger(__name__)


class WindowStore:
    """
    SQLite store for checklist templates and their dated, time-windowed instances.

    - UNIQUE(template_id, date) makes daily materialization idempotent
    - the transition to `expired` is conditional on a non-terminal status, so
      concurrent expiry checks cannot overwrite a verification that won the race

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "cadence.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("WindowStore ready db=%s", self._db_path)

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
                CREATE TABLE IF NOT EXISTS checklist_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    organization_id TEXT,
                    team_id TEXT,
                    scheduled_days TEXT NOT NULL DEFAULT '[]',
                    window_start TEXT,
                    window_end TEXT,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    recipient_ids TEXT NOT NULL DEFAULT '[]',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS checklist_instances (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER REFERENCES checklist_templates(id),
                    organization_id TEXT,
                    team_id TEXT,
                    date TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    window_start TEXT,
                    window_end TEXT,
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    upcoming_notified_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations: add columns missing from older databases.
            cur.execute("PRAGMA table_info(checklist_instances)")
            cols = {row["name"] for row in cur.fetchall()}
            if "upcoming_notified_at" not in cols:
                cur.execute("ALTER TABLE checklist_instances ADD COLUMN upcoming_notified_at REAL")
                logger.info("WindowStore migration: added column upcoming_notified_at")

            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_instances_template_date "
                "ON checklist_instances(template_id, date) WHERE template_id IS NOT NULL"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_instances_status ON checklist_instances(status, date)")
            conn.commit()
        finally:
            conn.close()

    # ---- templates ----

    def add_template(
        self,
        *,
        name: str,
        organization_id: str | None = None,
        team_id: str | None = None,
        scheduled_days: set[int] | frozenset[int] = frozenset(),
        window_start: str | None = None,
        window_end: str | None = None,
        timezone: str = "UTC",
        is_active: bool = True,
        recipient_ids: tuple[str, ...] | list[str] = (),
    ) -> int:
        if not name or not name.strip():
            raise ValueError("name is required")

        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO checklist_templates(
                    name, organization_id, team_id, scheduled_days, window_start, window_end,
                    timezone, is_active, recipient_ids, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name.strip(),
                    organization_id,
                    team_id,
                    json.dumps(sorted(scheduled_days)),
                    window_start,
                    window_end,
                    timezone,
                    1 if is_active else 0,
                    json.dumps(list(recipient_ids)),
                    time.time(),
                ),
            )
            conn.commit()
            if cur.lastrowid is None:
                raise RuntimeError("SQLite did not return lastrowid for template insert")
            return int(cur.lastrowid)
        finally:
            conn.close()

    def list_active_templates(self) -> list[ChecklistTemplate]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM checklist_templates WHERE is_active = 1 ORDER BY id ASC"
            ).fetchall()
        finally:
            conn.close()

        out: list[ChecklistTemplate] = []
        for row in rows:
            try:
                out.append(parse_template(row))
            except MalformedRecord as exc:
                logger.warning("Skipping malformed template: %s", exc)
        return out

    # ---- instances ----

    def _insert_instance(
        self,
        *,
        template_id: int | None,
        organization_id: str | None,
        team_id: str | None,
        day: date,
        status: InstanceStatus,
        window_start: str | None,
        window_end: str | None,
        timezone: str,
    ) -> int:
        now = time.time()
        conn = self._get_conn()
        try:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO checklist_instances(
                        template_id, organization_id, team_id, date, status,
                        window_start, window_end, timezone, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        template_id,
                        organization_id,
                        team_id,
                        day.isoformat(),
                        status.value,
                        window_start,
                        window_end,
                        timezone,
                        now,
                        now,
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"instance for template {template_id} on {day.isoformat()} already exists") from exc
            if cur.lastrowid is None:
                raise RuntimeError("SQLite did not return lastrowid for instance insert")
            return int(cur.lastrowid)
        finally:
            conn.close()

    def create_instance(self, template: ChecklistTemplate, *, date: date, status: InstanceStatus) -> int:
        return self._insert_instance(
            template_id=template.id,
            organization_id=template.organization_id,
            team_id=template.team_id,
            day=date,
            status=status,
            window_start=template.window_start,
            window_end=template.window_end,
            timezone=template.timezone,
        )

    def add_instance(
        self,
        *,
        day: date,
        window_start: str | None = None,
        window_end: str | None = None,
        status: InstanceStatus = InstanceStatus.PENDING,
        timezone: str = "UTC",
        organization_id: str | None = None,
        team_id: str | None = None,
    ) -> int:
        """Ad-hoc instance not tied to a template."""
        return self._insert_instance(
            template_id=None,
            organization_id=organization_id,
            team_id=team_id,
            day=day,
            status=status,
            window_start=window_start,
            window_end=window_end,
            timezone=timezone,
        )

    def get_instance(self, instance_id: int) -> ScheduledWindowInstance | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM checklist_instances WHERE id = ?", (int(instance_id),)
            ).fetchone()
        finally:
            conn.close()
        return parse_instance(row) if row else None

    def find_instance(self, template_id: int, day: date) -> ScheduledWindowInstance | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM checklist_instances WHERE template_id = ? AND date = ?",
                (int(template_id), day.isoformat()),
            ).fetchone()
        finally:
            conn.close()
        return parse_instance(row) if row else None

    def list_instances(self, template_id: int) -> list[ScheduledWindowInstance]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM checklist_instances WHERE template_id = ? ORDER BY date ASC",
                (int(template_id),),
            ).fetchall()
            return [parse_instance(r) for r in rows]
        finally:
            conn.close()

    def set_instance_status(self, instance_id: int, status: InstanceStatus) -> None:
        """
        Idempotent status write.

        `expired` is only applied to non-terminal rows; repeating it (or losing a race
        against a verification) is a silent no-op.
        """
        now = time.time()
        conn = self._get_conn()
        try:
            if status is InstanceStatus.EXPIRED:
                terminal = [s.value for s in TERMINAL_STATUSES]
                placeholders = ",".join("?" for _ in terminal)
                cur = conn.execute(
                    f"""
                    UPDATE checklist_instances
                    SET status = ?, updated_at = ?
                    WHERE id = ?
                      AND status NOT IN ({placeholders})
                    """,
                    (status.value, now, int(instance_id), *terminal),
                )
            else:
                cur = conn.execute(
                    "UPDATE checklist_instances SET status = ?, updated_at = ? WHERE id = ?",
                    (status.value, now, int(instance_id)),
                )
            conn.commit()
            logger.debug("set_instance_status id=%s status=%s changed=%s", instance_id, status.value, cur.rowcount)
        finally:
            conn.close()

    # ---- upcoming-window notice ----

    def claim_upcoming_notice(self, instance_id: int) -> bool:
        """
        Mark the "window opens soon" notice as sent; True only for the first caller.

        Holds across processes and restarts, unlike the in-process notification cache.
        """
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE checklist_instances
                SET upcoming_notified_at = ?
                WHERE id = ?
                  AND upcoming_notified_at IS NULL
                """,
                (time.time(), int(instance_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def release_upcoming_notice(self, instance_id: int) -> None:
        """Undo a claim whose delivery failed, so the next pass retries."""
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE checklist_instances SET upcoming_notified_at = NULL WHERE id = ?",
                (int(instance_id),),
            )
            conn.commit()
        finally:
            conn.close()
