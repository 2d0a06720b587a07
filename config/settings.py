"""
Settings configuration for the deck generation service.
"""
import os
from functools import lru_cache
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # App settings
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API settings
    API_ENABLED: bool = True
    API_HOST: str = "0.0.0.0"
    API_PORT: int = Field(8000, validation_alias="PORT")
    # Comma-separated list of browser origins allowed by CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Google Cloud Platform (Vertex AI) with Application Default Credentials
    GCP_ENABLED: bool = True
    GCP_PROJECT_ID: Optional[str] = None
    GCP_LOCATION: str = "us-central1"
    # Only used in production; locally run: gcloud auth application-default login
    GCP_SERVICE_ACCOUNT_JSON: Optional[str] = None

    # Model names should NOT include the 'google-vertex:' prefix (added by the client)
    GCP_MODEL_CLASSIFIER: str = "gemini-2.5-flash-lite"
    GCP_MODEL_GENERATOR: str = "gemini-2.5-flash"

    # Logging
    LOGFIRE_TOKEN: Optional[str] = None

    # Classifier: fixed attempt budget with linear backoff (attempt x base delay)
    CLASSIFIER_MAX_ATTEMPTS: int = Field(3, ge=1, le=10)
    CLASSIFIER_RETRY_BASE_DELAY: float = Field(1.0, ge=0.0)
    CLASSIFIER_TEMPERATURE: float = Field(0.1, ge=0.0, le=2.0)
    CLASSIFIER_KEYWORD_FALLBACK: bool = Field(
        True,
        description="Fall back to keyword guessing when classification is exhausted"
    )

    # Generator
    GENERATOR_TEMPERATURE: float = Field(0.7, ge=0.0, le=2.0)
    GENERATOR_MAX_TOKENS: int = Field(8192, ge=256)
    GENERATOR_MIN_CONTENT_LENGTH: int = Field(
        2,
        ge=1,
        description="Responses shorter than this (after stripping) are treated as empty"
    )
    GENERATOR_MAX_ATTEMPTS: int = Field(2, ge=1, le=5)
    GENERATOR_RETRY_BASE_DELAY: float = Field(2.0, ge=0.0)
    GENERATOR_MAX_RETRY_DELAY: float = Field(30.0, ge=0.0)

    # Strategies
    DEFAULT_STRATEGY_ID: str = "simple"

    # Slide counts suggested by classification are clamped to this range
    MIN_SLIDE_COUNT: int = Field(5, ge=1)
    MAX_SLIDE_COUNT: int = Field(20, ge=1)

    # Enhancer fan-out
    ENHANCER_MAX_WORKERS: int = Field(4, ge=1, le=32)

    # Assembler
    PAGE_NUMBERS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origins(self) -> List[str]:
        """CORS_ORIGINS split into a list, blanks dropped."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def has_ai_service(self) -> bool:
        """Check if a text-generation backend is configured."""
        return bool(self.GCP_ENABLED)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment (Railway)."""
        return os.environ.get('RAILWAY_PROJECT_ID') is not None

    def validate_settings(self) -> None:
        """
        Validate that essential settings are configured.

        Raises:
            ValueError: If no AI backend is available or production credentials are missing
        """
        if not self.has_ai_service:
            raise ValueError(
                "No AI service configured. Enable GCP (GCP_ENABLED=true) and authenticate with Vertex AI:\n"
                "  - Local: Run 'gcloud auth application-default login'\n"
                "  - Railway: Set GCP_SERVICE_ACCOUNT_JSON environment variable"
            )

        if not self.GCP_PROJECT_ID:
            raise ValueError(
                "GCP_PROJECT_ID is not set. Set it to the Google Cloud project that hosts Vertex AI."
            )

        if self.MIN_SLIDE_COUNT > self.MAX_SLIDE_COUNT:
            raise ValueError(
                f"MIN_SLIDE_COUNT ({self.MIN_SLIDE_COUNT}) exceeds MAX_SLIDE_COUNT ({self.MAX_SLIDE_COUNT})"
            )

        if self.is_production and not self.GCP_SERVICE_ACCOUNT_JSON:
            raise ValueError(
                "PRODUCTION SECURITY ERROR:\n"
                "GCP_ENABLED is true but GCP_SERVICE_ACCOUNT_JSON is not set.\n"
                "Railway production deployments MUST have GCP_SERVICE_ACCOUNT_JSON configured."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
