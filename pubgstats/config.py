"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str
    DB_AUTO_MIGRATE: bool = False  # Create tables on startup (dev / first deploy)

    # PUBG API
    PUBG_API_KEY: str = ""  # Default credential; scopes may carry their own
    PUBG_API_BASE_URL: str = "https://api.pubg.com"
    PUBG_SHARD: str = "steam"
    PUBG_TIMEOUT_SECONDS: float = 30.0
    # 1 = strictly sequential batch fetches. >1 fans out with a bounded pool
    # (result order is preserved either way).
    PUBG_FETCH_CONCURRENCY: int = 1

    # Aggregation cache
    AGGREGATION_CACHE_TTL_SECONDS: float = 300.0  # 5 minutes
    AGGREGATION_CACHE_MAX_ENTRIES: int = 512

    # Live / ingest defaults
    LIVE_DEFAULT_LIMIT: int = 12
    PLAYER_MATCHES_MAX_LIMIT: int = 60
    PLAYER_MATCHES_META_LIMIT: int = 50
    INGEST_BATCH_SIZE: int = 50

    # Runtime
    ENVIRONMENT: str = "development"  # "production" makes admin auth fail closed

    # API Security
    API_KEY: str = ""  # Admin endpoints (empty = open in development)
    API_KEY_HEADER: str = "X-API-Key"
    RATE_LIMIT_PER_MINUTE: str = "60/minute"

    # Telemetry / Observability
    METRICS_BEARER_TOKEN: str = ""  # Bearer token for /metrics endpoint
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
