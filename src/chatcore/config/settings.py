from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache
from ..validators.config_validators import to_uppercase, to_lowercase, normalize_url_path


class Settings(BaseSettings):
    """
    Application settings loaded from the environment (and an optional `.env` file).
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # Database configuration
    POSTGRES_DRIVER: str = "asyncpg"
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "chatcore"

    # Full URL wins over the POSTGRES_* parts (e.g. sqlite+aiosqlite:///./chat.db)
    DATABASE_URL_OVERRIDE: str | None = None

    # Test database configuration
    TEST_POSTGRES_DB: str | None = None
    TESTING: bool = False

    # SQLAlchemy
    SQLALCHEMY_ECHO: bool = False
    DB_CREATE_ALL: bool = False

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/chatcore")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False
    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0
    LOG_QUEUE_BLOCKING: bool = False
    LOG_QUEUE_DROP_WARNING_THRESHOLD: int = 100

    # Session cookie (signed by Starlette's SessionMiddleware)
    SESSION_SECRET_KEY: str = "change-me"
    SESSION_COOKIE_NAME: str = "chatcore_session"
    SESSION_MAX_AGE: int = 14 * 24 * 60 * 60  # two weeks, in seconds

    # Server
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    # Gateway
    GRAPHQL_PATH: str = "/api/graphql"
    HEALTH_PATH: str = "/api/health"
    GRAPHQL_DEBUG: bool = False

    # Messaging
    MESSAGE_MAX_LENGTH: int = 4000
    PRESENCE_TOUCH_ON_REQUEST: bool = True

    # --- Derived settings ---
    @property
    def DATABASE_URL(self) -> str:
        """
        Return the database URL for the current environment.

        `DATABASE_URL_OVERRIDE` is returned verbatim when set. Otherwise the URL is
        assembled from the POSTGRES_* parts, swapping in `TEST_POSTGRES_DB` when
        `TESTING=True` so test runs never touch the regular database.
        """
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE

        database = self.POSTGRES_DB
        if self.TESTING and self.TEST_POSTGRES_DB:
            database = self.TEST_POSTGRES_DB

        return (
            f"postgresql+{self.POSTGRES_DRIVER}://"
            f"{self.POSTGRES_USERNAME}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{database}"
        )

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Upper-case LOG_LEVEL before Literal validation so `debug` is accepted.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", mode="before")
    def normalize_log_format(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("GRAPHQL_PATH", "HEALTH_PATH", mode="before")
    def normalize_paths(cls, v: str | None) -> str | None:
        return normalize_url_path(v)

    @field_validator("MESSAGE_MAX_LENGTH")
    def positive_message_length(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("MESSAGE_MAX_LENGTH must be a positive integer")
        return v

    model_config = SettingsConfigDict(
        # .env at the package root (src/chatcore/.env)
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Settings come from the process environment only, so one instance is enough.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
