"""
Configuration and settings for the site backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=4000)
    log_level: str = Field(default="INFO")

    # Database (any SQLAlchemy URL; in-memory store when unset)
    database_url: Optional[str] = Field(default=None)

    # Uploaded files
    upload_dir: str = Field(default="uploads")
    uploads_path: str = Field(default="/uploads")
    base_url: Optional[str] = Field(default=None)
    max_upload_size_mb: int = Field(default=8)

    # Admin bearer tokens (guard disabled when no secret is set)
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")
    jwt_exp_leeway_seconds: int = Field(default=30)

    # Comma-separated origins allowed to call the API from a browser
    cors_origins: str = Field(default="*")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    @property
    def public_base_url(self) -> str:
        base = (self.base_url or "").strip()
        if not base:
            base = f"http://localhost:{self.port}"
        return base.rstrip("/")

    @property
    def cors_origin_list(self) -> list[str]:
        return [x.strip() for x in self.cors_origins.split(",") if x.strip()]

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_size_mb) * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
