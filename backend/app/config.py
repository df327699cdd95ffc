"""Application configuration."""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Development mode; when False, enforces strict configuration checks
    dev_mode: bool = True

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "https://localhost:3000",
    ]

    # Gemini API
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 10.0

    # Circuit Breaker (for Gemini API)
    circuit_breaker_failure_threshold: int = 3
    circuit_breaker_cooldown_seconds: int = 60

    # Rate Limiting
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_daily: int = 50  # per identifier per 24h window
    rate_limit_per_minute: int = 5  # enforced as a minimum spacing of 60s / N
    rate_limit_default: str = "60/minute"  # diagnostic endpoints (slowapi)
    rate_limit_cleanup_interval_seconds: int = 300

    # Input limits
    max_question_length: int = 500
    max_image_size_mb: int = 5
    history_context_turns: int = 3

    # Logging
    log_level: str = "info"

    @model_validator(mode="after")
    def _validate_production(self) -> "Settings":
        if not self.dev_mode and not self.gemini_api_key:
            raise ValueError("GEMINI_API_KEY must be set when DEV_MODE=false")
        if self.rate_limit_per_minute <= 0 or self.rate_limit_daily <= 0:
            raise ValueError("Rate limits must be positive integers")
        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
