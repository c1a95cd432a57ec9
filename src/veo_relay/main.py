"""FastAPI application wiring for the video relay.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Route/path operation: a function exposed over HTTP (for example, GET /api/health).
- Form/File: multipart fields parsed by FastAPI (needs python-multipart).
- app.state: a place to store shared runtime objects (store, service).
"""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config.settings import Settings, configure_logging, get_settings
from .errors import RelayError, RemoteApiError, StorageError
from .models import (
    ImageUpload,
    StatusResponse,
    SubmitRequest,
    SubmitResponse,
    TaskListResponse,
)
from .remote import VideoApi, build_video_api
from .service import VideoTaskService
from .storage.base import TaskStore
from .storage.postgres import PostgresTaskStore
from .storage.sqlite import SQLiteTaskStore

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = "Failed to create video task"
QUERY_FAILED_MESSAGE = "Failed to query video task"
LIST_FAILED_MESSAGE = "Failed to list tasks"

# Lifespan and first requests on threadpool workers may race to build runtime state.
_RUNTIME_STATE_LOCK = threading.Lock()


def build_task_store(settings: Settings) -> TaskStore:
    """PostgreSQL when a database URL is configured, SQLite in the data dir otherwise."""
    if settings.database_url:
        return PostgresTaskStore(settings.database_url)
    return SQLiteTaskStore.in_data_dir(settings.resolved_data_dir())


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: TaskStore | None,
    video_api_override: VideoApi | None,
) -> None:
    with _RUNTIME_STATE_LOCK:
        if not hasattr(app.state, "store"):
            app.state.store = store_override or build_task_store(settings)
            app.state.store.migrate()

        if not hasattr(app.state, "service"):
            app.state.service = VideoTaskService(
                store=app.state.store,
                remote=video_api_override or build_video_api(settings),
            )


def create_app(
    *,
    store: TaskStore | None = None,
    video_api: VideoApi | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Each test can build a fresh app with an in-memory store and a fake remote
    API. Without overrides the store is opened in the lifespan hook so that
    importing this module has no side effects.
    """
    settings = settings_override or get_settings()
    configure_logging(settings.log_level)

    def _ensure(target: FastAPI) -> None:
        _ensure_runtime_state(
            target,
            settings=settings,
            store_override=store,
            video_api_override=video_api,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure(app)
        yield

    app_lifespan = lifespan if store is None else None
    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=app_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _ensure(app)

    def _get_service(request: Request) -> VideoTaskService:
        if not hasattr(request.app.state, "service"):
            _ensure(request.app)
        return request.app.state.service

    @app.get("/")
    def home() -> dict[str, str]:
        return {"message": "Veo relay service is running", "status": "ok"}

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {
            "success": True,
            "message": "Service is healthy",
            "port": settings.resolved_port(),
        }

    @app.get("/api/tasks", response_model=TaskListResponse)
    def list_tasks(
        request: Request,
        client_id: str | None = Query(None, alias="clientId"),
    ) -> Any:
        try:
            tasks = _get_service(request).list_tasks(client_id)
        except RelayError as exc:
            return _error_response(exc, operation=LIST_FAILED_MESSAGE)
        return TaskListResponse(tasks=tasks)

    @app.post("/api/videos", response_model=SubmitResponse)
    def create_video(
        request: Request,
        prompt: str | None = Form(None),
        model: str | None = Form(None),
        aspect_ratio: str | None = Form(None, alias="aspectRatio"),
        client_id: str | None = Form(None, alias="clientId"),
        local_id: str | None = Form(None, alias="localId"),
        image: UploadFile | None = File(None),
    ) -> Any:
        submission = SubmitRequest(
            client_id=client_id,
            local_id=local_id,
            prompt=prompt,
            model=model,
            aspect_ratio=aspect_ratio,
            image=_read_upload(image),
        )
        try:
            result = _get_service(request).submit(submission)
        except RelayError as exc:
            return _error_response(exc, operation=CREATE_FAILED_MESSAGE)
        return SubmitResponse(
            db_id=result.db_id,
            id=result.id,
            status=result.status,
            progress=result.progress,
            raw=result.raw,
        )

    @app.get("/api/videos/{task_id}", response_model=StatusResponse)
    def get_video(task_id: str, request: Request) -> Any:
        try:
            normalized = _get_service(request).poll(task_id)
        except RelayError as exc:
            return _error_response(exc, operation=QUERY_FAILED_MESSAGE)
        return StatusResponse(
            id=normalized.id,
            status=normalized.status,
            progress=normalized.progress,
            video_url=normalized.video_url,
            error=normalized.error,
            raw=normalized.raw,
        )

    return app


def _read_upload(upload: UploadFile | None) -> ImageUpload | None:
    """Buffer the uploaded reference image in memory, as the remote call needs its bytes."""
    if upload is None or not upload.filename:
        return None
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        content=upload.file.read(),
    )


def _error_response(exc: RelayError, *, operation: str) -> JSONResponse:
    """Render the `{success: false, error, detail?}` envelope for a RelayError."""
    if isinstance(exc, (RemoteApiError, StorageError)):
        logger.warning(
            "request_failed operation=%r error_type=%s status=%s reason=%s",
            operation,
            type(exc).__name__,
            exc.status_code,
            exc.message,
        )
        content: dict[str, Any] = {"success": False, "error": operation, "detail": exc.detail}
    else:
        content = {"success": False, "error": exc.message}
    return JSONResponse(status_code=exc.status_code, content=content)


# Module-level app for `uvicorn veo_relay.main:app`.
app = create_app()
