"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    DEBUG: bool = False
    LOG_LEVEL: str = "info"

    # Standards catalog (empty = built-in DOH reference catalog)
    STANDARDS_PATH: str = ""

    # Result cache
    CACHE_ENABLED: bool = True
    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    CACHE_TTL_HOURS: int = 24
    REDIS_URL: str = "redis://localhost:6379/0"

    # Engine behaviour
    UNKNOWN_RULE_POLICY: Literal["pass", "fail"] = "pass"
    AGGREGATION_METHOD: Literal["sum", "weighted_average"] = "sum"
    HISTORY_SIZE: int = 5
    NEXT_VALIDATION_DAYS: int = 30
    VALIDATED_BY: str = "current_user"
    VALIDATOR_ROLE: str = "clinical_staff"

    # External validation API (empty URL disables it)
    VALIDATION_API_URL: str = ""
    VALIDATION_API_KEY: str = ""
    VALIDATION_API_TIMEOUT_SECONDS: float = 10.0
    VALIDATION_API_RETRIES: int = 3

    # Scheduling
    REALTIME_DEBOUNCE_SECONDS: float = 1.0
    BATCH_MAX_CONCURRENCY: int = 5
    QUEUE_MAX_WAIT_SECONDS: float = 300.0
    BATCH_RETENTION: int = 100
    LATEST_RESULTS_SIZE: int = 1000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
