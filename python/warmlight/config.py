"""Application settings loaded from environment variables.

Environment Configuration:
    WARMLIGHT_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    DB_TIMEOUT_MS: Bound for a single store call in milliseconds (default 5000)

Telegram Configuration:
    TELEGRAM_BOT_TOKEN: Bot API token (required in staging/prod)
    TELEGRAM_API_BASE_URL: Bot API base URL (default https://api.telegram.org)
    TELEGRAM_WEBHOOK_URL: Public webhook URL registered at startup (optional)
    TELEGRAM_WEBHOOK_SECRET: Secret echoed by Telegram on each webhook call (staging/prod)
    TELEGRAM_TIMEOUT_S: HTTP timeout for Bot API calls

Bot Behaviour:
    DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS: Active source lifetime when none is given (default 60)
    DEACTIVATOR_INTERVAL_MINS: Period of the active source expiry sweep (default 10)
    LIBRARY_TOKEN_EXPIRE_MINS: Lifetime of an issued library token (default 30)

Redis / Celery Configuration:
    REDIS_URL: Redis connection string (required for worker)
    CELERY_BROKER_URL: Celery broker URL (defaults to REDIS_URL)
    CELERY_RESULT_BACKEND: Celery result backend URL (defaults to REDIS_URL)

A value of 0 for any of the minute/millisecond durations means "use the default".
"""

from datetime import timedelta
from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_DB_TIMEOUT_MS = 5000
DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS = 60
DEFAULT_DEACTIVATOR_INTERVAL_MINS = 10
DEFAULT_LIBRARY_TOKEN_EXPIRE_MINS = 30


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - durations must not be negative; 0 falls back to the default
    - TELEGRAM_BOT_TOKEN and TELEGRAM_WEBHOOK_SECRET are required in staging and prod
    """

    warmlight_env: Environment = Field(default=Environment.LOCAL, alias="WARMLIGHT_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    db_timeout_ms: int = Field(default=DEFAULT_DB_TIMEOUT_MS, alias="DB_TIMEOUT_MS")

    # Telegram settings
    telegram_bot_token: str | None = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_api_base_url: str = Field(
        default="https://api.telegram.org", alias="TELEGRAM_API_BASE_URL"
    )
    telegram_webhook_url: str | None = Field(default=None, alias="TELEGRAM_WEBHOOK_URL")
    telegram_webhook_secret: str | None = Field(default=None, alias="TELEGRAM_WEBHOOK_SECRET")
    telegram_timeout_s: float = Field(default=10.0, alias="TELEGRAM_TIMEOUT_S")

    # Bot behaviour
    default_active_source_timeout_mins: int = Field(
        default=DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS, alias="DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS"
    )
    deactivator_interval_mins: int = Field(
        default=DEFAULT_DEACTIVATOR_INTERVAL_MINS, alias="DEACTIVATOR_INTERVAL_MINS"
    )
    library_token_expire_mins: int = Field(
        default=DEFAULT_LIBRARY_TOKEN_EXPIRE_MINS, alias="LIBRARY_TOKEN_EXPIRE_MINS"
    )

    # Redis / Celery settings
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    log_json: bool = Field(default=True, alias="LOG_JSON")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator(
        "db_timeout_ms",
        "default_active_source_timeout_mins",
        "deactivator_interval_mins",
        "library_token_expire_mins",
    )
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        """Reject negative durations."""
        if value < 0:
            raise ValueError("must be zero or greater")
        return value

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Apply duration defaults and check environment-specific requirements."""
        if self.db_timeout_ms == 0:
            self.db_timeout_ms = DEFAULT_DB_TIMEOUT_MS
        if self.default_active_source_timeout_mins == 0:
            self.default_active_source_timeout_mins = DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS
        if self.deactivator_interval_mins == 0:
            self.deactivator_interval_mins = DEFAULT_DEACTIVATOR_INTERVAL_MINS
        if self.library_token_expire_mins == 0:
            self.library_token_expire_mins = DEFAULT_LIBRARY_TOKEN_EXPIRE_MINS

        if self.warmlight_env in (Environment.STAGING, Environment.PROD):
            missing = []
            if not self.telegram_bot_token:
                missing.append("TELEGRAM_BOT_TOKEN")
            if not self.telegram_webhook_secret:
                missing.append("TELEGRAM_WEBHOOK_SECRET")
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} required for WARMLIGHT_ENV={self.warmlight_env.value}"
                )

        return self

    @property
    def library_token_lifetime(self) -> timedelta:
        """Lifetime of a freshly issued library token."""
        return timedelta(minutes=self.library_token_expire_mins)

    @property
    def deactivator_interval(self) -> timedelta:
        return timedelta(minutes=self.deactivator_interval_mins)

    @property
    def migration_statement_timeout_ms(self) -> int:
        """Library migrations touch every content row, so they get twice the bound."""
        return 2 * self.db_timeout_ms

    @property
    def requires_webhook_secret(self) -> bool:
        """Whether webhook calls must carry the secret token header."""
        return bool(self.telegram_webhook_secret)

    @property
    def effective_celery_broker_url(self) -> str | None:
        """Return Celery broker URL, falling back to REDIS_URL if not set."""
        return self.celery_broker_url or self.redis_url

    @property
    def effective_celery_result_backend(self) -> str | None:
        """Return Celery result backend URL, falling back to REDIS_URL if not set."""
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached for the lifetime of the process.
    """
    return Settings()  # type: ignore[call-arg]


def clear_settings_cache() -> None:
    """Clear the settings cache. Used by tests that change the environment."""
    get_settings.cache_clear()
