from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from veo_relay.config.settings import Settings
from veo_relay.main import create_app
from veo_relay.service import VideoTaskService
from veo_relay.storage.memory import InMemoryTaskStore

from .fakes import FakeVideoApi, SteppingClock


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def fake_api() -> FakeVideoApi:
    return FakeVideoApi()


@pytest.fixture
def service(store: InMemoryTaskStore, fake_api: FakeVideoApi) -> VideoTaskService:
    return VideoTaskService(store=store, remote=fake_api, clock=SteppingClock())


@pytest.fixture
def client(store: InMemoryTaskStore, fake_api: FakeVideoApi) -> Iterator[TestClient]:
    app = create_app(
        store=store,
        video_api=fake_api,
        settings_override=Settings(port=3001),
    )
    with TestClient(app) as test_client:
        yield test_client
