from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "JU Connect API"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False

    database_url: str = "sqlite:///./app.db"

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"])
    rate_limit_per_minute: int = 120
    auto_create_tables: bool = True

    storage_backend: Literal["local", "s3"] = "local"
    storage_dir: str = "data/storage"
    s3_bucket: str = "files"
    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    max_upload_size_mb: int = 25

    group_message_retention_days: int = 14
    retention_run_timeout_seconds: float = 600.0
    retention_preview_days: int = 4

    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_task_always_eager: bool = False
    cleanup_hour_utc: int = 2

    def get_celery_broker_url(self) -> str:
        return self.celery_broker_url or "redis://localhost:6379/0"

    def get_celery_result_backend(self) -> str:
        return self.celery_result_backend or self.get_celery_broker_url()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
