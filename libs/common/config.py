from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Dhaka"
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth provider
    # Placeholder defaults keep local/test runs working; deployments override via env.
    AUTH_JWT_SECRET: str = "test-jwt-secret"
    AUTH_JWT_AUDIENCE: Optional[str] = None

    # Redis / cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_BACKEND: Literal["none", "memory", "redis"] = "none"
    CACHE_DEFAULT_TTL_SECONDS: int = 300

    # Collaborators
    COMMUNICATIONS_SERVICE_URL: str = "http://communications-service:8004"
    PAYMENT_GATEWAY_URL: str = "https://api.stripe.com"
    PAYMENT_GATEWAY_SECRET_KEY: str = "sk_test_placeholder"
    PAYMENT_WEBHOOK_SECRET: str = "whsec_placeholder"

    # Store
    STORE_CURRENCY: str = "BDT"
    WAREHOUSE_LOCATION: str = "InterioWale Warehouse"
    DEFAULT_DELIVERY_DAYS: int = 5

    # Notification outbox
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
