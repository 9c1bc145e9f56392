"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./cnab.db"
    db_pool_size: int = 10
    db_max_overflow: int = 10
    db_pool_recycle_seconds: int = 3600

    # Service
    service_name: str = "cnab-processor"
    log_level: str = "INFO"

    # Import pipeline
    bulk_batch_size: int = 5000
    bulk_insert_threshold: int = 1000  # Parsed count at which uploads switch to bulk_insert
    max_upload_bytes: int = 10 * 1024 * 1024


settings = Settings()
