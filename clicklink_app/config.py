from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Application
    app_name: str = "ClickLink"
    app_version: str = "1.0.0"

    # Tokens are minted by the external credential service with this secret
    secret_key: str = "your-secret-key-here-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    # Database
    database_url: str = "sqlite:///./clicklink.db"
    database_busy_timeout: int = 30  # seconds (SQLite only)

    # Short codes
    base_url: str = "http://127.0.0.1:8000"
    short_code_length: int = 6
    short_code_escalated_length: int = 8  # used once a collision was seen
    short_code_max_attempts: int = 3
    max_alias_length: int = 32
    reserved_aliases: List[str] = [
        "api", "docs", "redoc", "openapi.json", "health", "static", "admin",
    ]

    # Aggregate updates: "inline" (increment after the click commits)
    # or "queued" (publish to the queue, worker applies it)
    aggregate_update_mode: str = "inline"

    # Queue settings
    queue_backend: str = "memory"  # Options: "redis_streams", "memory"
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "aggregate_increments"
    queue_consumer_group: str = "aggregate_workers"
    queue_batch_size: int = 100
    queue_worker_interval: float = 5.0  # seconds between empty polls

    # Geolocation collaborator
    geolocation_backend: str = "null"

    # Analytics windows
    analytics_trailing_days: int = 30
    analytics_top_n: int = 10
    dashboard_recent_days: int = 7
    dashboard_top_urls: int = 5

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
