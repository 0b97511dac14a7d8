# app/config/settings.py
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the hazard report API."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = "/api"
    log_level: str = "INFO"

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = "hazard_reports"
    mongodb_max_pool_size: int = 10
    mongodb_min_pool_size: int = 1
    mongodb_connect_timeout_ms: int = 5000
    use_in_memory_store: bool = False
    # Requires a replica set; standalone servers reject transactions
    use_transactions: bool = False

    # JWT signing
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    token_cache_ttl_seconds: int = 300

    # Uploads
    upload_dir: str = "uploads"
    max_upload_bytes: int = 5 * 1024 * 1024
    max_upload_files: int = 5
    allowed_image_extensions: List[str] = ["jpg", "jpeg", "png"]

    cors_origins: List[str] = ["http://localhost:3000"]
    port: Optional[int] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
