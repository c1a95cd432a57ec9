"""Pydantic models shared across API, service, normalizer, and storage.

Beginner terms used in this file:
- Record: a task row as read back from storage.
- Patch: the subset of mutable fields written after a status poll.
- View: the client-facing projection of a record (camelCase on the wire).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Status tags produced locally. Remote systems may report any other string.
STATUS_CREATING = "creating"
STATUS_QUEUED = "queued"
STATUS_FAILED = "failed"
STATUS_UNKNOWN = "unknown"


class CamelModel(BaseModel):
    """Response model that serializes field names in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NewTask(BaseModel):
    """Fields written when a submission creates its local row."""

    client_id: str
    local_id: str = ""
    prompt: str
    model: str
    aspect_ratio: str
    image_name: str = ""
    status: str = STATUS_CREATING
    progress: float = 0
    created_at: datetime


class StatusPatch(BaseModel):
    """Mutable fields overwritten for rows addressed by remote task id."""

    status: str
    progress: float = 0
    video_url: str = ""
    error_message: str = ""
    updated_at: datetime


class TaskRecord(BaseModel):
    """Persisted task row."""

    id: int
    client_id: str
    local_id: str = ""
    # Empty until the remote API accepts the job and the id is bound.
    remote_task_id: str = ""
    prompt: str
    model: str
    aspect_ratio: str
    image_name: str = ""
    status: str = STATUS_QUEUED
    progress: float = 0
    video_url: str = ""
    error_message: str = ""
    created_at: datetime
    updated_at: datetime


class CanonicalStatus(BaseModel):
    """Normalized remote status, whatever shape the remote payload had."""

    id: str = ""
    status: str = STATUS_UNKNOWN
    progress: int | float = 0
    video_url: str = ""
    error: str = ""
    # Original payload, kept for diagnostics.
    raw: Any = None


class ImageUpload(BaseModel):
    """Reference image received with a submission."""

    filename: str
    content_type: str = "application/octet-stream"
    content: bytes


class SubmitRequest(BaseModel):
    """Caller-supplied submission fields; validated by the service, not here."""

    client_id: str | None = None
    local_id: str | None = None
    prompt: str | None = None
    model: str | None = None
    aspect_ratio: str | None = None
    image: ImageUpload | None = None


class SubmitResult(BaseModel):
    """Outcome of a submission: local row id plus what the remote returned."""

    db_id: int
    id: str = ""
    status: str = ""
    progress: int | float = 0
    raw: Any = None


class TaskView(CamelModel):
    """Task row as shown to clients, with display-scaled progress."""

    db_id: int
    local_id: str
    api_id: str
    prompt: str
    model: str
    aspect_ratio: str
    image_name: str
    status: str
    progress: int | float
    video_url: str
    error: str
    # Reserved for client-side retry bookkeeping; the server never sets them.
    retry_hint: str = ""
    created_at: datetime
    is_retrying: bool = False
    can_retry_after_refresh: bool = False


class TaskListResponse(CamelModel):
    """Response body for GET /api/tasks."""

    success: bool = True
    tasks: list[TaskView] = Field(default_factory=list)


class SubmitResponse(CamelModel):
    """Response body for POST /api/videos."""

    success: bool = True
    db_id: int
    id: str
    status: str
    progress: int | float
    raw: Any = None


class StatusResponse(CamelModel):
    """Response body for GET /api/videos/{id}."""

    success: bool = True
    id: str
    status: str
    progress: int | float
    video_url: str
    error: str
    raw: Any = None
