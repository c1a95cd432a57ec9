"""In-memory storage backend for tests only."""

from __future__ import annotations

from datetime import datetime

from veo_relay.models import NewTask, StatusPatch, TaskRecord


class InMemoryTaskStore:
    """Simple in-memory implementation with the same row semantics as SQL backends."""

    def __init__(self) -> None:
        self._tasks: dict[int, TaskRecord] = {}
        self._next_id = 1

    def migrate(self) -> None:
        return None

    def create_task(self, task: NewTask) -> int:
        internal_id = self._next_id
        self._next_id += 1
        self._tasks[internal_id] = TaskRecord(
            id=internal_id,
            client_id=task.client_id,
            local_id=task.local_id,
            remote_task_id="",
            prompt=task.prompt,
            model=task.model,
            aspect_ratio=task.aspect_ratio,
            image_name=task.image_name,
            status=task.status,
            progress=task.progress,
            created_at=task.created_at,
            updated_at=task.created_at,
        )
        return internal_id

    def get_task(self, internal_id: int) -> TaskRecord | None:
        task = self._tasks.get(internal_id)
        return task.model_copy(deep=True) if task else None

    def bind_remote_id(self, internal_id: int, remote_task_id: str, updated_at: datetime) -> int:
        current = self._tasks.get(internal_id)
        if current is None or current.remote_task_id:
            return 0
        self._tasks[internal_id] = current.model_copy(
            update={"remote_task_id": remote_task_id, "updated_at": updated_at}
        )
        return 1

    def update_by_remote_id(self, remote_task_id: str, patch: StatusPatch) -> int:
        if not remote_task_id:
            return 0
        changes = 0
        for internal_id, current in self._tasks.items():
            if current.remote_task_id != remote_task_id:
                continue
            self._tasks[internal_id] = current.model_copy(update=patch.model_dump())
            changes += 1
        return changes

    def list_by_client(self, client_id: str) -> list[TaskRecord]:
        rows = [task for task in self._tasks.values() if task.client_id == client_id]
        return [task.model_copy(deep=True) for task in sorted(rows, key=lambda t: -t.id)]
