from functools import lru_cache
from typing import List, Literal

from pydantic import BaseModel, Field, PostgresDsn, RedisDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are Fixie, an AI-powered IT support specialist. You help users with "
    "technical IT issues and computer-related problems. Be helpful, professional, "
    "and provide actionable solutions. Keep responses concise but informative."
)


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])


class PgDbSettings(CustomSettings):
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="fixie")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    DATABASE_URL: PostgresDsn | str = Field(default="")

    @model_validator(mode="before")
    def validate_postgres_dsn(cls, data: dict):
        if isinstance(data, dict) and not data.get("DATABASE_URL"):
            _built_uri = PostgresDsn.build(
                scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
                username=data.get("POSTGRES_USER", "postgres"),
                password=data.get("POSTGRES_PASSWORD", "postgres"),
                host=data.get("POSTGRES_HOST", "localhost"),
                port=int(data.get("POSTGRES_PORT", 5432)),
                path=data.get("POSTGRES_DB", "fixie"),
            ).unicode_string()
            data["DATABASE_URL"] = _built_uri
        return data


class RedisSettings(CustomSettings):
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: SecretStr = Field(default="")
    REDIS_URL: RedisDsn | str = Field(default="")
    CELERY_BROKER_URL: str = Field(default="")
    CELERY_RESULT_BACKEND: str = Field(default="")

    @model_validator(mode="before")
    def validate_redis_url(cls, data: dict):
        if isinstance(data, dict) and not data.get("REDIS_URL"):
            password = data.get("REDIS_PASSWORD", "")
            _built_uri = RedisDsn.build(
                scheme="redis",
                host=data.get("REDIS_HOST", "localhost"),
                port=int(data.get("REDIS_PORT", 6379)),
                path=str(data.get("REDIS_DB", 0)),
                password=password if password else None,
            ).unicode_string()
            data["REDIS_URL"] = _built_uri
        # Celery falls back to the Redis URL
        redis_url = data.get("REDIS_URL", "redis://localhost:6379/0")
        if not data.get("CELERY_BROKER_URL"):
            data["CELERY_BROKER_URL"] = redis_url
        if not data.get("CELERY_RESULT_BACKEND"):
            data["CELERY_RESULT_BACKEND"] = redis_url
        return data


class OpenAISettings(CustomSettings):
    """Completion provider configuration.

    Env vars: OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL, OPENAI_MAX_TOKENS,
    OPENAI_TEMPERATURE, OPENAI_TIMEOUT_SECONDS, OPENAI_MAX_RETRIES.
    """

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    API_KEY: SecretStr = Field(default="")
    BASE_URL: str = Field(default="")
    MODEL: str = Field(default="gpt-4o-mini")
    MAX_TOKENS: int = Field(default=500, ge=1)
    TEMPERATURE: float = Field(default=0.7, ge=0.0, le=2.0)
    TIMEOUT_SECONDS: float = Field(default=120.0, gt=0)
    MAX_RETRIES: int = Field(default=3, ge=0)
    BACKOFF_INITIAL_SECONDS: float = Field(default=1.0, ge=0)
    BACKOFF_MAX_SECONDS: float = Field(default=20.0, ge=0)


class IdentitySettings(CustomSettings):
    """Identity service (Identity Toolkit REST API) configuration.

    Point IDENTITY_BASE_URL at the auth emulator for local development, e.g.
    ``http://localhost:9099/identitytoolkit.googleapis.com``.
    """

    IDENTITY_BASE_URL: str = Field(default="https://identitytoolkit.googleapis.com")
    IDENTITY_API_KEY: SecretStr = Field(default="")
    IDENTITY_PROJECT_ID: str = Field(default="")
    IDENTITY_ADMIN_TOKEN: SecretStr = Field(default="")
    IDENTITY_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)


class ChatSettings(CustomSettings):
    model_config = SettingsConfigDict(env_prefix="CHAT_")

    CONTEXT_WINDOW: int = Field(default=50, ge=1)
    SYSTEM_PROMPT: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    DISCONNECT_POLL_SECONDS: float = Field(default=0.5, gt=0)
    TITLE_REFRESH_ENABLED: bool = Field(default=True)
    TITLE_REFRESH_EVERY: int = Field(default=10, ge=1)
    TITLE_MAX_TOKENS: int = Field(default=100, ge=1)
    TITLE_TEMPERATURE: float = Field(default=0.3, ge=0.0, le=2.0)
    TITLE_MIN_SECONDS: float = Field(default=5.0, ge=0.0)


class CleanupSettings(CustomSettings):
    """Scheduled removal of unverified accounts.

    Env vars: CLEANUP_GRACE_PERIOD_HOURS, CLEANUP_PAGE_SIZE, CLEANUP_SCHEDULE_HOURS.
    """

    model_config = SettingsConfigDict(env_prefix="CLEANUP_")

    GRACE_PERIOD_HOURS: float = Field(default=24.0, ge=0)
    PAGE_SIZE: int = Field(default=1000, ge=1, le=1000)
    SCHEDULE_HOURS: float = Field(default=24.0, gt=0)


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    REDIS: RedisSettings = Field(default_factory=RedisSettings)
    OPENAI: OpenAISettings = Field(default_factory=OpenAISettings)
    IDENTITY: IdentitySettings = Field(default_factory=IdentitySettings)
    CHAT: ChatSettings = Field(default_factory=ChatSettings)
    CLEANUP: CleanupSettings = Field(default_factory=CleanupSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


SETTINGS = get_settings()
