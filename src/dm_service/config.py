from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_POOL_TIMEOUT: float = 10.0
    DB_CONNECT_TIMEOUT: float = 5.0
    DB_COMMAND_TIMEOUT: float = 10.0

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    SLOW_REQUEST_MS: float = 1000.0

    OUTBOX_POLL_INTERVAL: float = 1.0
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_MAX_ATTEMPTS: int = 5
    OUTBOX_CLAIM_TTL_SECONDS: float = 300.0

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    NOTIFY_FROM: str = "no-reply@localhost"
    NOTIFY_TIMEOUT_SECONDS: float = 10.0
    NOTIFY_MAX_ATTEMPTS: int = 3
    NOTIFY_RETRY_DELAY_SECONDS: float = 1.0
    APP_NAME: str = "Marketplace"
    APP_BASE_URL: str = "http://localhost:3000"

    PRESENCE_TTL_SECONDS: int = 60

    INBOX_ENRICH_CONCURRENCY: int = 8
    INBOX_ENRICH_TIMEOUT_SECONDS: float = 3.0

    DIRECTORY_EVENTS_STREAM: str = "directory.events"
    DIRECTORY_EVENTS_GROUP: str = "dm-service"
    # Pending entries are owned by this name; keep it stable per replica.
    DIRECTORY_EVENTS_CONSUMER: str = "dm-service-1"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
