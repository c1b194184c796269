"""Configuration using pydantic-settings."""

import os
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation and constants."""

    model_config = SettingsConfigDict(env_prefix="ARCH_", env_file=".env", extra="ignore")

    host: str = "0.0.0.0"  # nosec B104 - Required for container deployment
    port: int = 8000
    log_level: str = "INFO"
    log_file: str | None = None

    environment: Literal["development", "docker", "lambda"] = "development"

    # Any litellm model string, e.g. "gpt-4o" or "openrouter/meta-llama/llama-3.1-70b-instruct"
    llm_model: str = "gpt-4o"
    llm_api_key: str | None = None
    llm_timeout: int = 60
    llm_max_tokens: int = 4000
    recommendation_temperature: float = 0.7
    optimization_temperature: float = 0.5

    # "memory://" or "sqlite+aiosqlite:///./data/architect.db"
    database_url: str = "memory://"

    history_limit: int = 10
    demo_user_id: str = "demo_user"
    default_session_title: str = "New Architecture Discussion"

    rate_limit: str = "60/minute"
    cors_origins: list[str] = ["*"]

    @field_validator("history_limit")
    @classmethod
    def validate_history_limit(cls, value: int) -> int:
        """History window must be non-negative."""
        if value < 0:
            raise ValueError("history_limit cannot be negative")
        return value

    @property
    def is_lambda_environment(self) -> bool:
        """Check if running in AWS Lambda."""
        return self.environment == "lambda" or bool(os.getenv("AWS_LAMBDA_FUNCTION_NAME"))

    @model_validator(mode="after")
    def validate_environment(self) -> "Settings":
        """Set environment based on ARCH_ENV or AWS Lambda detection."""
        env = os.getenv("ARCH_ENV", "").lower()
        if env in ("lambda", "docker", "development"):
            self.environment = env  # type: ignore[assignment]
        elif os.getenv("AWS_LAMBDA_FUNCTION_NAME"):
            self.environment = "lambda"
        return self


settings = Settings()


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)."""
    return settings
