"""Application settings."""

from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]
RENDER_DATA_DIR = Path("/opt/render/project/src/data")
DEFAULT_PORT = 3001


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables and `.env` files.

    The API token and port also accept the unprefixed `VECTOR_API_TOKEN` and
    `PORT` names, from the environment or a `.env` file.
    """

    app_name: str = "veo-relay"
    vector_api_token: str = Field(
        default="",
        validation_alias=AliasChoices("VEO_RELAY_VECTOR_API_TOKEN", "VECTOR_API_TOKEN"),
    )
    vector_api_base_url: str = "https://api.vectorengine.ai/v1"
    remote_timeout_s: float = Field(default=60.0, ge=1.0)
    port: int = Field(default=0, validation_alias=AliasChoices("VEO_RELAY_PORT", "PORT"))
    data_dir: str = ""
    database_url: str = ""
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VEO_RELAY_",
        extra="ignore",
        populate_by_name=True,
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    @field_validator("port", mode="before")
    @classmethod
    def _unparseable_port_means_default(cls, value: Any) -> Any:
        # Empty or non-numeric values select the default port.
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return 0
        return value

    def resolved_vector_api_token(self) -> str:
        return self.vector_api_token.strip()

    def resolved_port(self) -> int:
        return self.port or DEFAULT_PORT

    def resolved_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        # Render mounts its persistent disk here.
        if os.getenv("RENDER"):
            return RENDER_DATA_DIR
        return Path("data")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str) -> None:
    """Install a root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s %(message)s")
    root.setLevel(level.upper())
