"""
Configuration and settings for the Dish Palate backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_TOKEN_SECRET = "dish-palate-dev-secret"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api/v1")

    # Document store (MongoDB expected)
    mongodb_uri: Optional[str] = Field(default=None)
    mongodb_database: str = Field(default="dish-palate")

    # Any SQLAlchemy URL; used when no MongoDB URI is configured
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Access tokens
    access_token_secret: str = Field(default=DEV_TOKEN_SECRET)
    access_token_lifetime_seconds: int = Field(default=3600)

    # HTTP
    cors_origins: list[str] = Field(default=["http://localhost:5173"])
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5000)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
