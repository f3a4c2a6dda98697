"""Configuration management for the question generation client."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Generative text service
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    request_timeout_seconds: float = 30.0

    # Rate limiting (free tier quota with a safety margin)
    max_requests_per_window: int = 15
    rate_limit_window_seconds: float = 60.0
    min_request_interval_seconds: float = 4.0

    # Throttle retry
    throttle_cooldown_seconds: float = 4.0
    max_throttle_retries: int = 3
    max_throttle_delay_seconds: float = 30.0

    # Session duplicate avoidance
    recent_question_window: int = 10

    # Optional YAML file extending the fallback question pool
    fallback_questions_path: Optional[str] = None


# Global settings instance
settings = Settings()
