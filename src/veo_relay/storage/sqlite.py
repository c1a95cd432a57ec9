"""SQLite storage backend for video tasks.

Beginner terms:
- Migration: creating the table and indexes before normal reads/writes.
- Row factory: returns query rows as dict-like objects instead of tuples.
- rowcount: number of rows an UPDATE touched; 0 means "no such task".
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from veo_relay.errors import StorageError
from veo_relay.models import NewTask, StatusPatch, TaskRecord

logger = logging.getLogger(__name__)

DB_FILENAME = "veo_tasks.db"


class SQLiteTaskStore:
    """Thread-safe SQLite-backed storage for task records."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Lock guards DB operations done through this storage instance.
        self._lock = threading.Lock()

    @classmethod
    def in_data_dir(cls, data_dir: Path | str) -> SQLiteTaskStore:
        return cls(Path(data_dir) / DB_FILENAME)

    def migrate(self) -> None:
        """Create required table and indexes if they do not already exist."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    client_id TEXT NOT NULL,
                    local_id TEXT,
                    api_task_id TEXT,
                    prompt TEXT NOT NULL,
                    model TEXT NOT NULL,
                    aspect_ratio TEXT NOT NULL,
                    image_name TEXT,
                    status TEXT DEFAULT 'queued',
                    progress REAL DEFAULT 0,
                    video_url TEXT DEFAULT '',
                    error_message TEXT DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_client_id
                ON tasks(client_id)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_tasks_api_task_id
                ON tasks(api_task_id)
                """)
        logger.info("task_store event=migrated backend=sqlite path=%s", self.db_path)

    def create_task(self, task: NewTask) -> int:
        """Insert a new task row and return its internal id."""
        created_at = task.created_at.isoformat()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks (
                    client_id,
                    local_id,
                    api_task_id,
                    prompt,
                    model,
                    aspect_ratio,
                    image_name,
                    status,
                    progress,
                    video_url,
                    error_message,
                    created_at,
                    updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.client_id,
                    task.local_id,
                    "",
                    task.prompt,
                    task.model,
                    task.aspect_ratio,
                    task.image_name,
                    task.status,
                    task.progress,
                    "",
                    "",
                    created_at,
                    created_at,
                ),
            )
            internal_id = cursor.lastrowid
        if internal_id is None:
            raise StorageError("Failed to create task", detail="insert returned no row id")
        return int(internal_id)

    def get_task(self, internal_id: int) -> TaskRecord | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (internal_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def bind_remote_id(self, internal_id: int, remote_task_id: str, updated_at: datetime) -> int:
        """Record the remote id once; rows that are already bound are left alone."""
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks
                SET api_task_id = ?, updated_at = ?
                WHERE id = ? AND COALESCE(api_task_id, '') = ''
                """,
                (remote_task_id, updated_at.isoformat(), internal_id),
            )
            return cursor.rowcount

    def update_by_remote_id(self, remote_task_id: str, patch: StatusPatch) -> int:
        """Overwrite status fields for rows bound to ``remote_task_id``."""
        if not remote_task_id:
            return 0
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks
                SET status = ?,
                    progress = ?,
                    video_url = ?,
                    error_message = ?,
                    updated_at = ?
                WHERE api_task_id = ?
                """,
                (
                    patch.status,
                    patch.progress,
                    patch.video_url,
                    patch.error_message,
                    patch.updated_at.isoformat(),
                    remote_task_id,
                ),
            )
            return cursor.rowcount

    def list_by_client(self, client_id: str) -> list[TaskRecord]:
        """Return all rows for a client, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE client_id = ?
                ORDER BY id DESC
                """,
                (client_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a connection under the lock; commit on success, roll back on error."""
        with self._lock:
            try:
                conn = sqlite3.connect(self.db_path)
                conn.row_factory = sqlite3.Row
                try:
                    with conn:
                        yield conn
                finally:
                    conn.close()
            except sqlite3.Error as exc:
                raise StorageError("Task database operation failed", detail=str(exc)) from exc

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        """Parse datetime value stored as ISO-8601 text."""
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_task(cls, row: sqlite3.Row) -> TaskRecord:
        """Map one DB row to the TaskRecord model."""
        return TaskRecord(
            id=int(row["id"]),
            client_id=row["client_id"],
            local_id=row["local_id"] or "",
            remote_task_id=row["api_task_id"] or "",
            prompt=row["prompt"],
            model=row["model"],
            aspect_ratio=row["aspect_ratio"],
            image_name=row["image_name"] or "",
            status=row["status"] or "",
            progress=row["progress"] if row["progress"] is not None else 0,
            video_url=row["video_url"] or "",
            error_message=row["error_message"] or "",
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

