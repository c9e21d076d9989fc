"""
Configuration and settings for the food diary service.
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
    front_origins: str = Field(default="*")

    # Document store (Postgres expected; any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)
    food_query_limit: int = Field(default=1000, ge=1)

    # S3-compatible object storage
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    user_image_bucket: str = Field(default="user_bk")
    food_image_bucket: str = Field(default="food_bk")
    max_image_bytes: int = Field(default=10 * 1024 * 1024)

    # Sessions
    jwt_secret: str = Field(default="change-me-food-diary-secret")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=120)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    def cors_origins(self) -> list[str]:
        if not self.front_origins or self.front_origins == "*":
            return ["*"]
        return [o.strip() for o in self.front_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
