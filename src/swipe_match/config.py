"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from swipe_match.domain.sessions import SessionConfig
from swipe_match.services.retry import RetryPolicy

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"
    default_max_rounds: int = 5
    default_round_timeout_seconds: int = 30
    default_quorum_fraction: float = 1.0
    default_match_threshold_fraction: float = 1.0
    store_read_attempts: int = 3
    store_retry_base_delay_seconds: float = 0.1
    store_retry_max_delay_seconds: float = 1.0

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def default_session_config(settings: Settings) -> SessionConfig:
    """Build the config applied to options a create request leaves out."""
    return SessionConfig(
        max_rounds=settings.default_max_rounds,
        quorum_fraction=settings.default_quorum_fraction,
        match_threshold_fraction=settings.default_match_threshold_fraction,
        round_timeout_seconds=settings.default_round_timeout_seconds,
    ).validate()


def read_retry_policy(settings: Settings) -> RetryPolicy:
    """Build the backoff policy used for idempotent store reads."""
    return RetryPolicy(
        attempts=max(1, settings.store_read_attempts),
        base_delay_seconds=settings.store_retry_base_delay_seconds,
        max_delay_seconds=settings.store_retry_max_delay_seconds,
    )
