"""Error taxonomy shared by the service layer and the HTTP surface.

Every error carries the HTTP status it maps to and an optional ``detail``
payload that is passed through to the client for diagnostics.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for errors the HTTP layer knows how to render."""

    status_code: int = 500

    def __init__(self, message: str, *, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(RelayError):
    """Caller input defect; fixable by the client."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class ConfigurationError(RelayError):
    """Server-side configuration is missing (e.g. the remote API token)."""

    status_code = 500


class RemoteApiError(RelayError):
    """Non-2xx response or transport failure from the remote generation API."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message, detail=detail)
        # Transport failures have no upstream status and surface as 500.
        self.status_code = status_code or 500
        self.upstream_status = status_code


class StorageError(RelayError):
    """Local persistence failure; the driver exception is kept as __cause__."""

    status_code = 500
