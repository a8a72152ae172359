"""Application configuration from environment."""
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "SharedStars Academy"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./sharedstars.db"

    # Signed auth cookie (identity of the caller)
    secret_key: str = "change-me-in-production-use-env"
    auth_cookie_name: str = "ssa_auth"
    auth_cookie_max_age: int = 60 * 60 * 24 * 14  # 14 days

    # STELLA text generation (OpenAI-compatible chat completions)
    llm_api_key: str | None = None
    llm_base_url: str = "https://api.openai.com/v1/chat/completions"
    llm_model: str = "gpt-4o"
    llm_fallback_model: str | None = "gpt-4o-mini"
    llm_max_tokens: int = 400

    # Timeouts (seconds); guidance must finish before the completion budget
    guidance_timeout_seconds: float = 3.0
    complete_timeout_seconds: float = 10.0

    guidance_cache_ttl_seconds: int = 15 * 60
    guidance_cache_size: int = 512

    certification_validity_days: int = 365
    # Calendar day used for streaks
    streak_timezone: str = "UTC"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @model_validator(mode="after")
    def _check_timeouts(self) -> "Settings":
        if self.guidance_timeout_seconds >= self.complete_timeout_seconds:
            raise ValueError("guidance_timeout_seconds must be shorter than complete_timeout_seconds")
        return self


def get_settings() -> Settings:
    return Settings()
