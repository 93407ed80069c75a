from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/peermatch.db"
    openai_api_key: str = ""
    secret_key: str = "dev-secret-key-change-in-production"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Redis configuration
    redis_url: str = "redis://localhost:6379"
    embedding_cache_enabled: bool = True

    # Celery configuration
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # Background match recomputation: "asyncio" (in-process) or "celery"
    background_backend: str = "asyncio"

    # Embedding provider: "openai", "local" or "mock"
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    # Local embedding model (when provider=local)
    local_embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    # Text expansion provider: "openai" or "mock"
    expansion_provider: str = "openai"
    expansion_model: str = "gpt-4o-mini"

    # Applied to every expansion/embedding call; a timeout takes the fallback path
    provider_timeout_seconds: float = 20.0

    # Match tuning (empirical values, see MatchThresholds)
    match_similarity_threshold: float = 0.6
    match_max_results: int = 10
    match_mutual_threshold: float = 0.75
    match_secondary_threshold: float = 0.6
    match_good_fit_threshold: float = 0.7
    match_excellent_fit_threshold: float = 0.8

    # Peers seen within this window get their matches recomputed
    recent_activity_hours: int = 24
    active_users_limit: int = 20

    # Presence sweep
    presence_timeout_minutes: int = 30
    presence_sweep_interval_minutes: int = 5

    model_config = SettingsConfigDict(env_file=".env")


@lru_cache
def get_settings() -> Settings:
    return Settings()
