"""Configuration management for sessionflow.

Settings are read from the environment (or a ``.env`` file) through
pydantic-settings. Workflow code must not read the environment directly, so
values needed inside a workflow are resolved by the caller and passed in
explicitly (for example ``RetryConfig.from_settings(get_settings())``).
"""

import logging
from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionFlowSettings(BaseSettings):
    """sessionflow settings."""

    # Thread store (Redis)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    thread_ttl_seconds: int = Field(default=60 * 60 * 24 * 90, alias="THREAD_TTL_SECONDS")

    # Session loop
    session_max_turns: int = Field(default=50, alias="SESSION_MAX_TURNS")
    session_parallel_tools: bool = Field(default=True, alias="SESSION_PARALLEL_TOOLS")
    state_wait_timeout_seconds: float = Field(default=55.0, alias="STATE_WAIT_TIMEOUT_SECONDS")

    # Activity retry policy
    activity_max_attempts: int = Field(default=6, alias="ACTIVITY_MAX_ATTEMPTS")
    activity_initial_interval_seconds: float = Field(
        default=5.0, alias="ACTIVITY_INITIAL_INTERVAL_SECONDS"
    )
    activity_max_interval_seconds: float = Field(
        default=900.0, alias="ACTIVITY_MAX_INTERVAL_SECONDS"
    )
    activity_backoff_coefficient: float = Field(default=4.0, alias="ACTIVITY_BACKOFF_COEFFICIENT")
    activity_start_to_close_seconds: int = Field(
        default=1800, alias="ACTIVITY_START_TO_CLOSE_SECONDS"
    )
    activity_heartbeat_seconds: int = Field(default=300, alias="ACTIVITY_HEARTBEAT_SECONDS")

    # Temporal
    temporal_host: str = Field(default="localhost:7233", alias="TEMPORAL_HOST")
    temporal_namespace: str = Field(default="default", alias="TEMPORAL_NAMESPACE")
    temporal_task_queue: str = Field(default="sessionflow-agents", alias="TEMPORAL_TASK_QUEUE")

    # Model
    llm_model: str = Field(default="anthropic/claude-sonnet-4-20250514", alias="LLM_MODEL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("session_max_turns", "activity_max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator(
        "state_wait_timeout_seconds",
        "activity_start_to_close_seconds",
        "activity_heartbeat_seconds",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def state_wait_timeout(self) -> timedelta:
        """Upper bound for one wait-for-state-change update."""
        return timedelta(seconds=self.state_wait_timeout_seconds)

    @property
    def activity_start_to_close_timeout(self) -> timedelta:
        return timedelta(seconds=self.activity_start_to_close_seconds)

    @property
    def activity_heartbeat_timeout(self) -> timedelta:
        return timedelta(seconds=self.activity_heartbeat_seconds)


@lru_cache
def get_settings() -> SessionFlowSettings:
    """Get cached settings instance."""
    return SessionFlowSettings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for workers and local runs."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
