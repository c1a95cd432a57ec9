"""Storage backends for video task records."""

from veo_relay.storage.base import TaskStore
from veo_relay.storage.memory import InMemoryTaskStore
from veo_relay.storage.postgres import PostgresTaskStore
from veo_relay.storage.sqlite import SQLiteTaskStore

__all__ = [
    "InMemoryTaskStore",
    "PostgresTaskStore",
    "SQLiteTaskStore",
    "TaskStore",
]
