"""Configuration using pydantic-settings."""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8000
    log_level: str = "INFO"
    log_file: str | None = None

    environment: Literal["development", "docker", "test"] = "development"

    # LLM settings
    llm_base_url: str | None = None
    llm_model: str = "openai/gpt-4o-mini"
    llm_api_key: str | None = None
    llm_timeout: int = 30

    guard_temperature: float = 0.3
    extract_temperature: float = 0.3
    format_temperature: float = 0.7
    title_temperature: float = 0.3

    # Retry settings, retries after the first LLM call
    retry_max_attempts: int = 3
    retry_initial_delay: float = 1.0

    # Admission control
    rate_limit_per_minute: int = 10
    http_rate_limit: str = "60/minute"

    # Streaming settings
    max_message_length: int = 4000
    ping_interval: float = 15.0
    max_response_time: float = 120.0
    stream_chunk_delay: float = 0.03
    generate_titles: bool = True

    database_url: str = "sqlite+aiosqlite:///./data/car_chat.db"
    seed_catalog: bool = True

    # JWT settings
    secret_key: str = "your-secret-key-change-in-production"  # noqa: S105
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60

    @property
    def llm_configured(self) -> bool:
        """Check whether an LLM API key is present."""
        return bool(self.llm_api_key)

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Validate numeric limits that would break the pipeline."""
        if self.retry_max_attempts < 0:
            raise ValueError("CARCHAT_RETRY_MAX_ATTEMPTS cannot be negative")
        if self.rate_limit_per_minute < 1:
            raise ValueError("CARCHAT_RATE_LIMIT_PER_MINUTE must be at least 1")
        if self.max_message_length < 1:
            raise ValueError("CARCHAT_MAX_MESSAGE_LENGTH must be at least 1")
        if self.ping_interval <= 0:
            raise ValueError("CARCHAT_PING_INTERVAL must be positive")
        return self

    class Config:
        """Pydantic config."""

        env_prefix = "CARCHAT_"
        env_file = ".env"
        extra = "ignore"


settings = Settings()
