"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "jobboard"

    # JWT Auth - access and refresh tokens use separate secrets
    jwt_secret_key: str = "change-this-secret"
    jwt_refresh_secret_key: str = "change-this-refresh-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 1440
    jwt_refresh_expire_days: int = 30

    # Password hashing (bcrypt work factor)
    bcrypt_rounds: int = Field(12, ge=10, le=16)

    # Uploads
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 10

    # Identity federation (RS256 ID tokens)
    federated_issuer: str = "https://accounts.google.com"
    federated_audience: Optional[str] = None
    federated_public_key_path: Optional[str] = None

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
