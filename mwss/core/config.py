from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    # Bounds connect and command time on every database call
    db_timeout_seconds: float = Field(10.0, alias="DB_TIMEOUT_SECONDS")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    account_cleanup_enabled: bool = Field(True, alias="ACCOUNT_CLEANUP_ENABLED")
    cleanup_interval_seconds: int = Field(3600, alias="CLEANUP_INTERVAL_SECONDS")

    identifier_max_attempts: int = Field(10, alias="IDENTIFIER_MAX_ATTEMPTS")

    notification_webhook_url: Optional[str] = Field(None, alias="NOTIFICATION_WEBHOOK_URL")
    notification_queue_size: int = Field(1000, alias="NOTIFICATION_QUEUE_SIZE")
    notification_timeout_seconds: float = Field(5.0, alias="NOTIFICATION_TIMEOUT_SECONDS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    admin_email: Optional[str] = Field(None, alias="ADMIN_EMAIL")
    admin_password: Optional[str] = Field(None, alias="ADMIN_PASSWORD")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
