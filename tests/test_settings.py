from __future__ import annotations

from core.settings import (
    ChatSettings,
    CleanupSettings,
    OpenAISettings,
    PgDbSettings,
    RedisSettings,
)


def test_openai_defaults():
    settings = OpenAISettings()
    assert settings.MODEL == "gpt-4o-mini"
    assert settings.MAX_TOKENS == 500
    assert settings.TEMPERATURE == 0.7
    assert settings.TIMEOUT_SECONDS == 120.0


def test_prefixed_env_vars(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")
    monkeypatch.setenv("CHAT_CONTEXT_WINDOW", "20")
    monkeypatch.setenv("CLEANUP_GRACE_PERIOD_HOURS", "48")

    assert OpenAISettings().MODEL == "gpt-4o"
    assert ChatSettings().CONTEXT_WINDOW == 20
    assert CleanupSettings().GRACE_PERIOD_HOURS == 48


def test_database_url_built_from_parts(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("POSTGRES_HOST", "db")
    monkeypatch.setenv("POSTGRES_DB", "fixie_test")

    url = str(PgDbSettings().DATABASE_URL)
    assert url.startswith("postgresql+asyncpg://")
    assert "@db:5432/fixie_test" in url


def test_celery_urls_fall_back_to_redis(monkeypatch):
    for name in ("REDIS_URL", "CELERY_BROKER_URL", "CELERY_RESULT_BACKEND"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("REDIS_HOST", "cache")

    settings = RedisSettings()
    assert settings.CELERY_BROKER_URL == settings.REDIS_URL
    assert "cache:6379" in settings.CELERY_BROKER_URL
