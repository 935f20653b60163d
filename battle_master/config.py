"""Configuration management for Battle Master."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BATTLE_MASTER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Generative Language API
    api_key: str = Field(
        default="",
        description="API key appended to every generateContent request",
    )
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generative-AI REST API",
    )
    text_model: str = Field(
        default="gemini-2.5-flash-preview-05-20",
        description="Model used for encounter text generation",
    )
    tts_model: str = Field(
        default="gemini-2.5-flash-preview-tts",
        description="Model used for speech synthesis",
    )
    request_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for a single HTTP attempt",
    )
    max_retries: int = Field(
        default=5,
        ge=0,
        description="Retries on rate limiting or network failure (attempts = retries + 1)",
    )

    # Sampling
    generate_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    flesh_out_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Audio
    default_sample_rate: int = Field(
        default=24000,
        description="Sample rate assumed when the audio mime type omits rate=<n>",
    )

    # Identity
    app_id: str = Field(default="default-app-id")
    auth_token: Optional[str] = Field(
        default=None,
        description="Optional custom token used to sign in instead of anonymously",
    )
    auth_secret: str = Field(
        default="",
        description="Shared secret used to verify custom tokens",
    )
    auth_algorithm: str = Field(default="HS256")

    # Observability
    observability_enabled: bool = Field(default=True)
    observability_dir: Path = Field(
        default=Path("./data/logs"),
        description="Directory for JSON Lines telemetry",
    )

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @property
    def has_api_key(self) -> bool:
        """Check if an API key is configured."""
        return bool(self.api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
