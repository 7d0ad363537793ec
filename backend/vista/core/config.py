"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import List, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "Vista"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    # Webhook deliveries and the admin UI come from arbitrary origins
    ALLOWED_ORIGINS: str = "*"

    @field_validator("ALLOWED_ORIGINS")
    @classmethod
    def parse_origins(cls, v: str) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in v.split(",")]

    # ================================
    # Database Configuration
    # ================================
    DATABASE_URL: str = Field(..., description="PostgreSQL connection string")
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # ================================
    # Redis Configuration
    # ================================
    REDIS_URL: str = "redis://redis:6379/0"

    # Full syncs for one profile are serialized with a Redis lock
    SYNC_LOCK_TIMEOUT_SECONDS: int = 30 * 60
    SYNC_LOCK_BLOCKING_TIMEOUT_SECONDS: int = 5

    # ================================
    # Notion API
    # ================================
    NOTION_API_BASE_URL: str = "https://api.notion.com/v1"
    NOTION_API_VERSION: str = "2022-06-28"
    NOTION_REQUEST_TIMEOUT: int = 30
    NOTION_PAGE_SIZE: int = 100  # Notion caps page_size at 100

    # Pages fetched and normalized in parallel during a full sync
    SYNC_PAGE_CONCURRENCY: int = 4

    # ================================
    # Asset Storage (S3 compatible)
    # ================================
    ASSET_BUCKET_NAME: str = "notion-images"
    ASSET_STORAGE_ENDPOINT: Optional[str] = None
    ASSET_STORAGE_REGION: str = "us-east-1"
    ASSET_STORAGE_ACCESS_KEY: Optional[str] = None
    ASSET_STORAGE_SECRET_KEY: Optional[str] = None
    # Public URL prefix for stored objects, e.g. a CDN in front of the bucket
    ASSET_PUBLIC_BASE_URL: Optional[str] = None
    ASSET_DOWNLOAD_TIMEOUT: int = 30

    # ================================
    # Embedding Configuration
    # ================================
    EMBEDDING_MODEL: str = "google/embeddinggemma-300m"
    EMBEDDING_DIMENSION: int = 768
    EMBEDDING_BATCH_SIZE: int = 32
    EMBEDDING_DEVICE: Literal["cpu", "cuda", "mps"] = "cpu"
    # items_processed is committed once per this many items
    EMBEDDING_PROGRESS_BATCH_SIZE: int = 10

    # ================================
    # Celery Configuration
    # ================================
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    # Celery accept content as comma-separated string, we'll parse it
    CELERY_ACCEPT_CONTENT: str = "json"
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True

    @property
    def celery_accept_content_list(self) -> List[str]:
        """Parse CELERY_ACCEPT_CONTENT into a list."""
        return [item.strip() for item in self.CELERY_ACCEPT_CONTENT.split(",")]

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"


# Global settings instance
settings = Settings()
