"""
Application settings module.

Manages all configuration via environment variables using pydantic-settings.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PG_", extra="ignore")

    host: str = "localhost"
    port: int = 5432
    user: str = "admin"
    password: str = "1234"
    database: str = "apartment_match_dev"
    pool_max: int = 10
    command_timeout: float = 10.0  # Seconds, a stuck catalog query fails the request

    @property
    def dsn(self) -> str:
        """Generate PostgreSQL DSN."""
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="REDIS_", extra="ignore")

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""

    # Seconds. Cache calls must never hold up a request for long.
    connect_timeout: float = 2.0
    socket_timeout: float = 1.0

    @property
    def url(self) -> str:
        """Generate Redis URL."""
        if self.password:
            return f"redis://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"redis://{self.host}:{self.port}/{self.db}"


class GroqSettings(BaseSettings):
    """Groq (OpenAI-compatible) explanation provider settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="GROQ_", extra="ignore")

    api_key: str = ""  # GROQ_API_KEY, empty disables LLM explanations
    api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    model: str = "llama-3.3-70b-versatile"
    temperature: float = 0.3
    max_tokens: int = 200

    timeout: float = 5.0          # Per-call deadline in seconds
    max_concurrent: int = 5       # In-flight calls across all requests
    request_delay: float = 0.1    # Spacing between calls while others are in flight
    cache_ttl: int = 60 * 60 * 24  # 24 hours
    rate_limit_cooldown: float = 10.0  # Used when a 429 carries no reset hint

    @property
    def enabled(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.api_key)


class MatchingSettings(BaseSettings):
    """Match pipeline settings."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="MATCH_", extra="ignore")

    cache_ttl: int = 60 * 60  # 1 hour

    # Pagination
    default_limit: int = 6
    min_limit: int = 1
    max_limit: int = 50

    # Scoring bounds
    max_scored: int = 1000
    batch_size: int = 100
    pagination_lookahead: int = 50

    # Enrichment
    explanation_threshold: int = 50
    enrich_timeout: float = 8.0

    # Best-effort invalidation sweep when the store cannot enumerate keys
    sweep_pages: int = 10
    sweep_limits: list[int] = [3, 6]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    cors_origins: str = "*"

    postgres: PostgresSettings = PostgresSettings()
    redis: RedisSettings = RedisSettings()
    groq: GroqSettings = GroqSettings()
    matching: MatchingSettings = MatchingSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
