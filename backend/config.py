"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Museo admin server settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Paths
    data_dir: Path = Path("./data")
    uploads_dir: Path = Path("./uploads")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=5050, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)

    # Manifest
    # When the catalog cannot be read, serve an empty manifest instead of a 503.
    manifest_fail_open: bool = True

    @property
    def albums_file(self) -> Path:
        return self.data_dir / "albums.json"

    @property
    def tracks_file(self) -> Path:
        return self.data_dir / "tracks.json"

    @property
    def audio_dir(self) -> Path:
        return self.uploads_dir / "audio"

    @property
    def covers_dir(self) -> Path:
        return self.uploads_dir / "covers"
