"""PostgreSQL-backed task storage with automatic table migration."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from veo_relay.errors import StorageError
from veo_relay.models import NewTask, StatusPatch, TaskRecord

logger = logging.getLogger(__name__)


class PostgresTaskStore:
    """Persist task records in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("VEO_RELAY_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row = self._load_psycopg()

    def migrate(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id BIGSERIAL PRIMARY KEY,
                    client_id TEXT NOT NULL,
                    local_id TEXT,
                    api_task_id TEXT,
                    prompt TEXT NOT NULL,
                    model TEXT NOT NULL,
                    aspect_ratio TEXT NOT NULL,
                    image_name TEXT,
                    status TEXT DEFAULT 'queued',
                    progress DOUBLE PRECISION DEFAULT 0,
                    video_url TEXT DEFAULT '',
                    error_message TEXT DEFAULT '',
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
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
        logger.info("task_store event=migrated backend=postgres")

    def create_task(self, task: NewTask) -> int:
        with self._transaction() as conn:
            row = conn.execute(
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
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
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
                    task.created_at,
                    task.created_at,
                ),
            ).fetchone()
        if row is None or row.get("id") is None:
            raise StorageError("Failed to create task", detail="insert returned no row id")
        return int(row["id"])

    def get_task(self, internal_id: int) -> TaskRecord | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = %s", (internal_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def bind_remote_id(self, internal_id: int, remote_task_id: str, updated_at: datetime) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks
                SET api_task_id = %s, updated_at = %s
                WHERE id = %s AND COALESCE(api_task_id, '') = ''
                """,
                (remote_task_id, updated_at, internal_id),
            )
            return cursor.rowcount

    def update_by_remote_id(self, remote_task_id: str, patch: StatusPatch) -> int:
        if not remote_task_id:
            return 0
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tasks
                SET status = %s,
                    progress = %s,
                    video_url = %s,
                    error_message = %s,
                    updated_at = %s
                WHERE api_task_id = %s
                """,
                (
                    patch.status,
                    patch.progress,
                    patch.video_url,
                    patch.error_message,
                    patch.updated_at,
                    remote_task_id,
                ),
            )
            return cursor.rowcount

    def list_by_client(self, client_id: str) -> list[TaskRecord]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM tasks
                WHERE client_id = %s
                ORDER BY id DESC
                """,
                (client_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        """Open a dict-row connection; psycopg commits on clean exit, rolls back otherwise."""
        with self._lock:
            try:
                with self._psycopg.connect(self.database_url, row_factory=self._dict_row) as conn:
                    yield conn
            except self._psycopg.Error as exc:
                raise StorageError("Task database operation failed", detail=str(exc)) from exc

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _row_to_task(row: Any) -> TaskRecord:
        return TaskRecord(
            id=int(row["id"]),
            client_id=row["client_id"],
            local_id=row.get("local_id") or "",
            remote_task_id=row.get("api_task_id") or "",
            prompt=row["prompt"],
            model=row["model"],
            aspect_ratio=row["aspect_ratio"],
            image_name=row.get("image_name") or "",
            status=row.get("status") or "",
            progress=row.get("progress") or 0,
            video_url=row.get("video_url") or "",
            error_message=row.get("error_message") or "",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
