"""Storage interface for video task records."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from veo_relay.models import NewTask, StatusPatch, TaskRecord


class TaskStore(Protocol):
    def migrate(self) -> None: ...

    def create_task(self, task: NewTask) -> int: ...

    def get_task(self, internal_id: int) -> TaskRecord | None: ...

    def bind_remote_id(
        self,
        internal_id: int,
        remote_task_id: str,
        updated_at: datetime,
    ) -> int: ...

    def update_by_remote_id(self, remote_task_id: str, patch: StatusPatch) -> int: ...

    def list_by_client(self, client_id: str) -> list[TaskRecord]: ...
