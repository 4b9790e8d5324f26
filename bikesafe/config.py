"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import List

from pydantic import field_validator, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Notes:
    - The OpenRouteService API key MUST be set via the environment in production
    - Default values are for development only
    """

    # Application
    app_name: str = "BikeSafe Route Engine"
    app_env: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = False

    # OpenRouteService routing provider
    ors_base_url: str = Field(
        default="https://api.openrouteservice.org",
        description="Base URL of the OpenRouteService API (or a self-hosted instance).",
    )
    ors_api_key: str = Field(
        default="",
        description="OpenRouteService API key, sent in the Authorization header.",
    )
    ors_profile: str = Field(default="cycling-regular", description="ORS routing profile")
    provider_timeout_seconds: float = Field(
        default=20.0,
        ge=1.0,
        le=120.0,
        description="Per-request timeout for provider calls; slower requests are abandoned.",
    )

    # CORS - Restrict in production
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    cors_allow_methods: List[str] = ["GET", "POST", "OPTIONS"]
    cors_allow_headers: List[str] = ["Content-Type", "Authorization", "X-Request-ID"]

    # Logging
    log_level: str = "INFO"
    log_requests: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("ors_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the provider base URL so paths can be appended."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def directions_url(self) -> str:
        """GeoJSON directions endpoint for the configured profile."""
        return f"{self.ors_base_url}/v2/directions/{self.ors_profile}/geojson"

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    def validate_production_settings(self) -> List[str]:
        """Validate settings are usable in production. Returns list of errors."""
        errors = []

        if self.is_production():
            if not self.ors_api_key:
                errors.append("ORS_API_KEY must be set in production")

            if any("localhost" in origin for origin in self.cors_origins):
                errors.append("CORS_ORIGINS should not include localhost in production")

            if self.debug:
                errors.append("DEBUG must be False in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
