"""Run the relay with uvicorn: ``python -m veo_relay``."""

from __future__ import annotations

import uvicorn

from .config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("veo_relay.main:app", host="0.0.0.0", port=settings.resolved_port())


if __name__ == "__main__":
    main()
