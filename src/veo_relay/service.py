"""Video task lifecycle: create locally, submit remotely, bind, poll, update.

The service owns no global state: the task store and the remote API client
are injected, so tests can swap either for a double.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from .errors import ConfigurationError, RemoteApiError, StorageError, ValidationError
from .models import (
    STATUS_CREATING,
    STATUS_FAILED,
    STATUS_QUEUED,
    CanonicalStatus,
    NewTask,
    StatusPatch,
    SubmitRequest,
    SubmitResult,
    TaskRecord,
    TaskView,
)
from .normalizer import error_message_from_body, initial_progress, normalize_status
from .progress import display_progress
from .remote import VideoApi
from .storage.base import TaskStore

logger = logging.getLogger(__name__)

POLL_FAILED_MESSAGE = "Failed to query video task"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class VideoTaskService:
    """Coordinates the task store and the remote video API for one request at a time."""

    def __init__(
        self,
        *,
        store: TaskStore,
        remote: VideoApi,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.remote = remote
        self._clock = clock

    def submit(self, request: SubmitRequest) -> SubmitResult:
        """Validate, create the local row, submit to the remote API, bind its id.

        If the remote call fails the local row is left in ``creating`` with no
        remote id and the ``RemoteApiError`` propagates unchanged.
        """
        self._require_remote_credential()
        if not request.client_id:
            raise ValidationError("clientId", "clientId is required")
        if not request.prompt or not request.prompt.strip():
            raise ValidationError("prompt", "prompt must not be blank")
        if not request.model:
            raise ValidationError("model", "model is required")
        if not request.aspect_ratio:
            raise ValidationError("aspectRatio", "aspectRatio is required")
        if request.image is None:
            raise ValidationError("image", "exactly one reference image is required")

        db_id = self.store.create_task(
            NewTask(
                client_id=request.client_id,
                local_id=request.local_id or "",
                prompt=request.prompt,
                model=request.model,
                aspect_ratio=request.aspect_ratio,
                image_name=request.image.filename,
                status=STATUS_CREATING,
                progress=0,
                created_at=self._clock(),
            )
        )
        logger.info(
            "video_task event=created db_id=%s client_id=%s model=%s aspect_ratio=%s",
            db_id,
            request.client_id,
            request.model,
            request.aspect_ratio,
        )

        raw = self.remote.create_video(
            model=request.model,
            prompt=request.prompt,
            aspect_ratio=request.aspect_ratio,
            image=request.image,
        )
        data = raw if isinstance(raw, dict) else {}
        remote_id = str(data.get("id") or "")
        progress = initial_progress(data)

        if remote_id:
            updated_at = self._clock()
            self.store.bind_remote_id(db_id, remote_id, updated_at)
            self.store.update_by_remote_id(
                remote_id,
                StatusPatch(
                    status=str(data.get("status") or STATUS_QUEUED),
                    progress=progress,
                    video_url=str(data.get("video_url") or ""),
                    error_message="",
                    updated_at=updated_at,
                ),
            )
            logger.info(
                "video_task event=submitted db_id=%s remote_id=%s status=%s",
                db_id,
                remote_id,
                data.get("status"),
            )
        else:
            logger.warning("video_task event=submitted_without_id db_id=%s", db_id)

        return SubmitResult(
            db_id=db_id,
            id=remote_id,
            status=str(data.get("status") or ""),
            progress=progress,
            raw=raw,
        )

    def poll(self, remote_task_id: str | None) -> CanonicalStatus:
        """Fetch remote status, normalize it, and persist it on the bound row(s).

        A remote failure marks matching rows ``failed`` on a best-effort basis
        before the ``RemoteApiError`` is re-raised.
        """
        self._require_remote_credential()
        task_id = (remote_task_id or "").strip()
        if not task_id:
            raise ValidationError("id", "task id is required")

        try:
            data = self.remote.get_video(task_id)
        except RemoteApiError as exc:
            self._mark_failed(task_id, error_message_from_body(exc.detail, POLL_FAILED_MESSAGE))
            raise

        normalized = normalize_status(data)
        changes = self.store.update_by_remote_id(
            task_id,
            StatusPatch(
                status=normalized.status,
                progress=normalized.progress,
                video_url=normalized.video_url,
                error_message=normalized.error,
                updated_at=self._clock(),
            ),
        )
        logger.info(
            "video_task event=polled remote_id=%s status=%s progress=%s rows=%d",
            task_id,
            normalized.status,
            normalized.progress,
            changes,
        )
        return normalized

    def list_tasks(self, client_id: str | None) -> list[TaskView]:
        """Return a client's tasks, newest first, with display-scaled progress."""
        if not client_id or not client_id.strip():
            raise ValidationError("clientId", "clientId is required")
        return [to_task_view(record) for record in self.store.list_by_client(client_id)]

    def _require_remote_credential(self) -> None:
        if not self.remote.configured:
            raise ConfigurationError("VECTOR_API_TOKEN is not configured")

    def _mark_failed(self, remote_task_id: str, error_message: str) -> None:
        try:
            self.store.update_by_remote_id(
                remote_task_id,
                StatusPatch(
                    status=STATUS_FAILED,
                    progress=0,
                    video_url="",
                    error_message=error_message,
                    updated_at=self._clock(),
                ),
            )
        except StorageError as exc:
            logger.warning(
                "video_task event=mark_failed_skipped remote_id=%s reason=%s",
                remote_task_id,
                exc,
            )


def to_task_view(record: TaskRecord) -> TaskView:
    return TaskView(
        db_id=record.id,
        local_id=record.local_id,
        api_id=record.remote_task_id,
        prompt=record.prompt,
        model=record.model,
        aspect_ratio=record.aspect_ratio,
        image_name=record.image_name,
        status=record.status,
        progress=display_progress(record.progress),
        video_url=record.video_url,
        error=record.error_message,
        created_at=record.created_at,
    )
