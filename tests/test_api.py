from __future__ import annotations

from fastapi.testclient import TestClient

from veo_relay.config.settings import Settings
from veo_relay.errors import RemoteApiError, StorageError
from veo_relay.main import create_app
from veo_relay.models import NewTask
from veo_relay.storage.memory import InMemoryTaskStore

from .fakes import FakeVideoApi

FORM = {
    "prompt": "A paper boat drifting down a rainy street",
    "model": "veo3-fast",
    "aspectRatio": "16:9",
    "clientId": "client-1",
    "localId": "local-1",
}
IMAGE = {"image": ("boat.png", b"\x89PNG", "image/png")}


class BrokenListStore(InMemoryTaskStore):
    def list_by_client(self, client_id: str) -> list:
        raise StorageError("Task database operation failed", detail="database is locked")


class BrokenCreateStore(InMemoryTaskStore):
    def create_task(self, task: NewTask) -> int:
        raise StorageError("Task database operation failed", detail="disk full")


def test_root_and_health(client: TestClient) -> None:
    root = client.get("/")
    assert root.status_code == 200
    assert root.json()["status"] == "ok"

    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json() == {"success": True, "message": "Service is healthy", "port": 3001}


def test_submit_then_poll_end_to_end(
    client: TestClient,
    store: InMemoryTaskStore,
    fake_api: FakeVideoApi,
) -> None:
    fake_api.create_reply = {"id": "abc", "status": "queued", "progress": 0}

    created = client.post("/api/videos", data=FORM, files=IMAGE)

    assert created.status_code == 200
    body = created.json()
    assert body["success"] is True
    assert body["id"] == "abc"
    assert body["status"] == "queued"
    assert body["progress"] == 0
    assert body["raw"] == {"id": "abc", "status": "queued", "progress": 0}
    record = store.get_task(body["dbId"])
    assert record is not None
    assert (record.remote_task_id, record.status) == ("abc", "queued")

    fake_api.status_replies["abc"] = {"status": "succeeded", "video_url": "https://y"}
    polled = client.get("/api/videos/abc")

    assert polled.status_code == 200
    assert polled.json() == {
        "success": True,
        "id": "",
        "status": "succeeded",
        "progress": 0,
        "videoUrl": "https://y",
        "error": "",
        "raw": {"status": "succeeded", "video_url": "https://y"},
    }
    record = store.get_task(body["dbId"])
    assert record is not None
    assert (record.status, record.video_url) == ("succeeded", "https://y")


def test_submit_missing_image_is_rejected_without_remote_call(
    client: TestClient,
    store: InMemoryTaskStore,
    fake_api: FakeVideoApi,
) -> None:
    response = client.post("/api/videos", data=FORM)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "exactly one reference image is required",
    }
    assert fake_api.calls == []
    assert store.list_by_client("client-1") == []


def test_submit_blank_prompt_is_rejected(client: TestClient) -> None:
    response = client.post("/api/videos", data={**FORM, "prompt": "  "}, files=IMAGE)

    assert response.status_code == 400
    assert response.json()["error"] == "prompt must not be blank"


def test_submit_without_token_is_a_server_error(store: InMemoryTaskStore) -> None:
    app = create_app(
        store=store,
        video_api=FakeVideoApi(configured=False),
        settings_override=Settings(),
    )
    with TestClient(app) as client:
        response = client.post("/api/videos", data={"clientId": "client-1"})
        polled = client.get("/api/videos/abc")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "VECTOR_API_TOKEN is not configured"}
    assert polled.status_code == 500


def test_submit_remote_failure_passes_status_through(
    client: TestClient,
    store: InMemoryTaskStore,
    fake_api: FakeVideoApi,
) -> None:
    fake_api.create_reply = RemoteApiError(
        "VectorEngine returned HTTP 401",
        status_code=401,
        detail={"error": {"message": "invalid token"}},
    )

    response = client.post("/api/videos", data=FORM, files=IMAGE)

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Failed to create video task",
        "detail": {"error": {"message": "invalid token"}},
    }
    [record] = store.list_by_client("client-1")
    assert record.status == "creating"


def test_submit_storage_failure_is_500(fake_api: FakeVideoApi) -> None:
    app = create_app(store=BrokenCreateStore(), video_api=fake_api, settings_override=Settings())
    with TestClient(app) as client:
        response = client.post("/api/videos", data=FORM, files=IMAGE)

    assert response.status_code == 500
    assert response.json()["detail"] == "disk full"
    assert fake_api.calls == []


def test_poll_failure_marks_row_failed_and_returns_remote_status(
    client: TestClient,
    store: InMemoryTaskStore,
    fake_api: FakeVideoApi,
) -> None:
    created = client.post("/api/videos", data=FORM, files=IMAGE).json()
    fake_api.status_replies["abc"] = RemoteApiError(
        "VectorEngine returned HTTP 503",
        status_code=503,
        detail={"error": "upstream overloaded"},
    )

    response = client.get("/api/videos/abc")

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "error": "Failed to query video task",
        "detail": {"error": "upstream overloaded"},
    }
    record = store.get_task(created["dbId"])
    assert record is not None
    assert record.status == "failed"
    assert record.error_message == "upstream overloaded"


def test_list_tasks_returns_task_views(client: TestClient, fake_api: FakeVideoApi) -> None:
    fake_api.create_reply = {"id": "first", "status": "running", "progress": 0.25}
    client.post("/api/videos", data=FORM, files=IMAGE)
    fake_api.create_reply = {"id": "second", "status": "running", "progress": 60}
    client.post("/api/videos", data={**FORM, "aspectRatio": "9:16"}, files=IMAGE)

    response = client.get("/api/tasks", params={"clientId": "client-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [task["apiId"] for task in body["tasks"]] == ["second", "first"]
    newest = body["tasks"][0]
    assert newest["progress"] == 60
    assert newest["aspectRatio"] == "9:16"
    assert newest["imageName"] == "boat.png"
    assert newest["localId"] == "local-1"
    assert newest["retryHint"] == ""
    assert newest["isRetrying"] is False
    assert newest["canRetryAfterRefresh"] is False
    assert set(newest) == {
        "dbId",
        "localId",
        "apiId",
        "prompt",
        "model",
        "aspectRatio",
        "imageName",
        "status",
        "progress",
        "videoUrl",
        "error",
        "retryHint",
        "createdAt",
        "isRetrying",
        "canRetryAfterRefresh",
    }
    assert body["tasks"][1]["progress"] == 25


def test_list_tasks_requires_client_id(client: TestClient) -> None:
    response = client.get("/api/tasks")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "clientId is required"}


def test_list_tasks_for_unknown_client_is_empty(client: TestClient) -> None:
    response = client.get("/api/tasks", params={"clientId": "nobody"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "tasks": []}


def test_list_tasks_storage_error_is_500(fake_api: FakeVideoApi) -> None:
    app = create_app(store=BrokenListStore(), video_api=fake_api, settings_override=Settings())
    with TestClient(app) as client:
        response = client.get("/api/tasks", params={"clientId": "client-1"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "error": "Failed to list tasks",
        "detail": "database is locked",
    }


def test_cors_headers_are_sent(client: TestClient) -> None:
    response = client.get("/api/health", headers={"Origin": "https://app.example"})

    assert response.headers["access-control-allow-origin"] == "*"


def test_list_tasks_survives_progress_that_overflows_when_scaled(
    client: TestClient,
    store: InMemoryTaskStore,
    fake_api: FakeVideoApi,
) -> None:
    fake_api.create_reply = {"id": "huge", "status": "running", "progress": 1e307}
    created = client.post("/api/videos", data=FORM, files=IMAGE).json()
    record = store.get_task(created["dbId"])
    assert record is not None
    assert record.progress == 1e307

    response = client.get("/api/tasks", params={"clientId": "client-1"})

    assert response.status_code == 200
    assert response.json()["tasks"][0]["progress"] == 0
