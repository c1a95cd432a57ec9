"""HTTP client for the VectorEngine video-generation API.

Two calls are used:
- ``POST /videos`` (multipart) starts a generation job and returns its id.
- ``GET /videos/{id}`` reports the job status in one of several shapes
  (see ``veo_relay.normalizer``).

There is no retry: any non-2xx response or transport failure is raised as
``RemoteApiError`` carrying the upstream status and body where available.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib import parse

import httpx

from .config.settings import Settings
from .errors import RemoteApiError
from .models import ImageUpload

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.vectorengine.ai/v1"
VIDEO_SECONDS = "8"

# Requested aspect ratio -> remote "size" vocabulary.
ASPECT_RATIO_SIZES = {
    "16:9": "16x9",
    "9:16": "9x16",
}
DEFAULT_SIZE = "16x9"


def size_for_aspect_ratio(aspect_ratio: str) -> str:
    return ASPECT_RATIO_SIZES.get(aspect_ratio, DEFAULT_SIZE)


class VideoApi(Protocol):
    """Interface the task service needs from the remote API."""

    @property
    def configured(self) -> bool: ...

    def create_video(
        self,
        *,
        model: str,
        prompt: str,
        aspect_ratio: str,
        image: ImageUpload,
    ) -> Any: ...

    def get_video(self, remote_task_id: str) -> Any: ...


class VectorEngineClient:
    """Small VectorEngine adapter over httpx with a bounded timeout."""

    def __init__(
        self,
        *,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        # Tests inject httpx.MockTransport here.
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    def create_video(
        self,
        *,
        model: str,
        prompt: str,
        aspect_ratio: str,
        image: ImageUpload,
    ) -> Any:
        form = {
            "model": model,
            "prompt": prompt,
            "seconds": VIDEO_SECONDS,
            "size": size_for_aspect_ratio(aspect_ratio),
            "watermark": "false",
        }
        files = {"input_reference": (image.filename, image.content, image.content_type)}
        return self._request("POST", "/videos", data=form, files=files)

    def get_video(self, remote_task_id: str) -> Any:
        return self._request(
            "GET",
            f"/videos/{parse.quote(remote_task_id, safe='')}",
            headers={"Accept": "application/json"},
        )

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Return the decoded JSON body, or the response text when it is not JSON."""
        url = f"{self.base_url}{path}"
        request_headers = {"Authorization": f"Bearer {self.api_token}", **(headers or {})}
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                response = client.request(method, url, headers=request_headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(
                "vector_api event=transport_error method=%s path=%s reason=%s",
                method,
                path,
                exc,
            )
            raise RemoteApiError(f"VectorEngine request failed: {exc}", detail=str(exc)) from exc

        body = _decode_body(response)
        if response.is_error:
            logger.warning(
                "vector_api event=http_error method=%s path=%s status=%s",
                method,
                path,
                response.status_code,
            )
            raise RemoteApiError(
                f"VectorEngine returned HTTP {response.status_code}",
                status_code=response.status_code,
                detail=body if isinstance(body, (dict, list)) else {"raw": body},
            )
        return body


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return response.text


def build_video_api(settings: Settings) -> VectorEngineClient:
    return VectorEngineClient(
        api_token=settings.resolved_vector_api_token(),
        base_url=settings.vector_api_base_url,
        timeout_s=settings.remote_timeout_s,
    )
