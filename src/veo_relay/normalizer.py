"""Normalize remote video-task status payloads into one canonical shape.

The remote API reports status in one of several layouts:

- flat: ``{"status": ..., "progress": ..., "video_url": ...}``
- nested under ``detail``: ``{"detail": {"status": ...}}``
- nested under ``detail.pending_info``:
  ``{"detail": {"pending_info": {"status": ..., "progress_pct": ..., "failure_reason": ...}}}``

Each canonical field is resolved by an ordered tuple of extractor functions;
the first one that yields a value wins. Nothing in this module raises on
malformed input: missing or mistyped nodes degrade to defaults.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any

from .models import STATUS_UNKNOWN, CanonicalStatus

Extractor = Callable[[dict[str, Any]], Any]


def _node(payload: Any, *path: str) -> Any:
    """Walk nested dict keys; return None as soon as a node is not a dict."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _pending_info(payload: dict[str, Any]) -> Any:
    return _node(payload, "detail", "pending_info")


STATUS_EXTRACTORS: tuple[Extractor, ...] = (
    lambda payload: _node(payload, "status"),
    lambda payload: _node(payload, "detail", "status"),
    lambda payload: _node(_pending_info(payload), "status"),
)

# Progress extractors only skip absent/null values, so an explicit 0 wins.
PROGRESS_EXTRACTORS: tuple[Extractor, ...] = (
    lambda payload: _node(payload, "progress"),
    lambda payload: _node(_pending_info(payload), "progress_pct"),
)

# A string `error` wins even when empty; the nested forms only count when set.
ERROR_EXTRACTORS: tuple[Extractor, ...] = (
    lambda payload: _string_or_none(_node(payload, "error")),
    lambda payload: _node(payload, "error", "message") or None,
    lambda payload: _node(_pending_info(payload), "failure_reason") or None,
)


def normalize_status(payload: Any) -> CanonicalStatus:
    """Map any remote status payload to ``CanonicalStatus``; never raises."""
    data = payload if isinstance(payload, dict) else {}
    status = _first_non_empty(data, STATUS_EXTRACTORS) or STATUS_UNKNOWN
    progress = _coerce_progress(_first_present(data, PROGRESS_EXTRACTORS))
    error_message = _first_present(data, ERROR_EXTRACTORS)
    video_url = _node(data, "video_url")
    task_id = _node(data, "id")
    return CanonicalStatus(
        id=str(task_id) if task_id else "",
        status=str(status),
        progress=progress,
        video_url=str(video_url) if video_url else "",
        error=str(error_message) if error_message else "",
        raw=payload,
    )


def error_message_from_body(body: Any, default: str) -> str:
    """Extract the message from a remote error body (string or ``{message}`` form)."""
    for extractor in ERROR_EXTRACTORS[:2]:
        value = extractor(body) if isinstance(body, dict) else None
        if value:
            return str(value)
    return default


def initial_progress(payload: Any) -> int | float:
    """Progress reported by a submission response; a present 0 is kept."""
    return _coerce_progress(_node(payload, "progress"))


def _first_non_empty(payload: dict[str, Any], extractors: tuple[Extractor, ...]) -> Any:
    for extractor in extractors:
        value = extractor(payload)
        if value:
            return value
    return None


def _first_present(payload: dict[str, Any], extractors: tuple[Extractor, ...]) -> Any:
    for extractor in extractors:
        value = extractor(payload)
        if value is not None:
            return value
    return None


def _string_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _coerce_progress(value: Any) -> int | float:
    """Keep numeric progress as-is; parse numeric strings; anything else is 0."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return _finite_or_zero(value)
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return 0
        return _finite_or_zero(parsed)
    return 0


def _finite_or_zero(value: int | float) -> int | float:
    """NaN, infinities and numbers too large for a float become 0."""
    try:
        as_float = float(value)
    except OverflowError:
        return 0
    if not math.isfinite(as_float):
        return 0
    # Stored progress columns hold at most a 64-bit integer.
    if isinstance(value, int) and abs(value) >= 2**63:
        return as_float
    return value
