"""
Application settings and configuration management.

Uses pydantic-settings for environment variable loading.
"""

from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "OralExam Sim"
    app_version: str = "0.1.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Gemini API (content generation, image generation, TTS, scoring)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    paper_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    tts_gemini_model: str = "gemini-2.5-flash-preview-tts"
    scoring_model: str = "gemini-2.5-flash"
    request_timeout_seconds: float = 120.0

    # TTS configuration
    tts_model: str = "gemini"  # Options: gemini, edge-tts
    tts_voice: str = "Kore"  # Default prompt voice
    passage_voice: str = "Puck"  # Voice for listening passages
    tts_rate: int = 24000

    # Exam timing
    instruction_settle_seconds: float = Field(default=2.0, ge=0)
    tick_seconds: float = Field(default=1.0, gt=0)
    rest_interval_seconds: int = Field(default=10, ge=0)

    # Scoring
    scoring_concurrency: int = Field(
        default=1, ge=1,
        description="Parallel scoring requests (1 = strictly sequential)"
    )

    # Capture
    capture_mime_type: str = "audio/webm"

    # CORS - stored as comma-separated string in env
    # Uses validation_alias to read from CORS_ORIGINS env var
    cors_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        validation_alias="cors_origins"
    )

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
