"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Docstore application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/docstore.db"

    # Paths
    storage_dir: Path = Path("./storage")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)

    # Uploads
    max_upload_size: int = Field(default=10 * 1024 * 1024, ge=1)

    # Uploading a file with the name of an existing one leaves the old file's
    # chunk rows in place unless this is set.
    purge_replaced_chunks: bool = False
