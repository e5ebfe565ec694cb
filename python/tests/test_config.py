"""Tests for application configuration."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from warmlight.config import (
    DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS,
    DEFAULT_DB_TIMEOUT_MS,
    DEFAULT_DEACTIVATOR_INTERVAL_MINS,
    DEFAULT_LIBRARY_TOKEN_EXPIRE_MINS,
    Environment,
    Settings,
)


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "sqlite://",
        "WARMLIGHT_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDurationDefaults:
    def test_defaults(self):
        s = _make_settings()
        assert s.db_timeout_ms == DEFAULT_DB_TIMEOUT_MS
        assert s.default_active_source_timeout_mins == 60
        assert s.deactivator_interval_mins == 10
        assert s.library_token_expire_mins == 30

    def test_zero_means_default(self):
        s = _make_settings(
            DB_TIMEOUT_MS=0,
            DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS=0,
            DEACTIVATOR_INTERVAL_MINS=0,
            LIBRARY_TOKEN_EXPIRE_MINS=0,
        )
        assert s.db_timeout_ms == DEFAULT_DB_TIMEOUT_MS
        assert s.default_active_source_timeout_mins == DEFAULT_ACTIVE_SOURCE_TIMEOUT_MINS
        assert s.deactivator_interval_mins == DEFAULT_DEACTIVATOR_INTERVAL_MINS
        assert s.library_token_expire_mins == DEFAULT_LIBRARY_TOKEN_EXPIRE_MINS

    def test_overrides_accepted(self):
        s = _make_settings(LIBRARY_TOKEN_EXPIRE_MINS=90, DEACTIVATOR_INTERVAL_MINS=5)
        assert s.library_token_lifetime == timedelta(minutes=90)
        assert s.deactivator_interval == timedelta(minutes=5)

    def test_negative_rejected(self):
        with pytest.raises(ValidationError, match="must be zero or greater"):
            _make_settings(DB_TIMEOUT_MS=-1)

    def test_migration_timeout_is_twice_the_store_bound(self):
        s = _make_settings(DB_TIMEOUT_MS=1500)
        assert s.migration_statement_timeout_ms == 3000


class TestEnvironmentRequirements:
    def test_database_url_required(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_deployed_env_requires_telegram_secrets(self, env):
        with pytest.raises(ValidationError, match="TELEGRAM_BOT_TOKEN, TELEGRAM_WEBHOOK_SECRET"):
            _make_settings(WARMLIGHT_ENV=env)

    def test_prod_with_secrets_accepted(self):
        s = _make_settings(
            WARMLIGHT_ENV="prod",
            TELEGRAM_BOT_TOKEN="123:abc",
            TELEGRAM_WEBHOOK_SECRET="s3cret",
        )
        assert s.warmlight_env == Environment.PROD
        assert s.requires_webhook_secret is True

    def test_local_needs_no_telegram_settings(self):
        s = _make_settings(WARMLIGHT_ENV="local")
        assert s.telegram_bot_token is None
        assert s.requires_webhook_secret is False


class TestCeleryUrls:
    def test_fall_back_to_redis_url(self):
        s = _make_settings(REDIS_URL="redis://localhost:6379/0")
        assert s.effective_celery_broker_url == "redis://localhost:6379/0"
        assert s.effective_celery_result_backend == "redis://localhost:6379/0"

    def test_explicit_urls_win(self):
        s = _make_settings(
            REDIS_URL="redis://localhost:6379/0",
            CELERY_BROKER_URL="redis://broker:6379/1",
            CELERY_RESULT_BACKEND="redis://backend:6379/2",
        )
        assert s.effective_celery_broker_url == "redis://broker:6379/1"
        assert s.effective_celery_result_backend == "redis://backend:6379/2"
