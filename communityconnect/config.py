"""Configuration management for Community Connect.

This module provides centralized configuration using Pydantic Settings,
read from environment variables and an optional ``.env`` file.

Environment Profiles:
    - DEVELOPMENT: Verbose logging, console tracing, safe defaults
    - PRODUCTION: Structured JSON logs, tracing enabled
    - TESTING: Minimal logging, no file logging, no tracing

Example:
    >>> from communityconnect.config import settings
    >>> print(settings.rest_url)
    http://127.0.0.1:54321/rest/v1
    >>> if settings.is_production:
    ...     print("Running in production mode")
"""

from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from communityconnect.utils import redact_token


class Environment(StrEnum):
    """Runtime environment with specific behavior profiles.

    Attributes:
        DEVELOPMENT: Verbose logging, console span export
        PRODUCTION: JSON logging, OTLP tracing
        TESTING: Quiet logging, nothing written to disk
        STAGING: Pre-production validation environment
    """

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"
    STAGING = "staging"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Attributes:
        supabase_url: Base URL of the hosted backend project
        supabase_anon_key: Public anon key sent as ``apikey`` on every request
        media_bucket: Storage bucket that receives post media
        blood_expiry_hours: Lifetime of blood posts
        read_attempts: Attempts for idempotent reads (1 means no retry)
        request_timeout: Overall HTTP timeout in seconds
        community_email: Default sign-in email for the CLI
        community_password: Default sign-in password for the CLI
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment Configuration
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Runtime environment (development, production, testing, staging)",
    )

    # Backend Configuration
    supabase_url: str = Field(
        "http://127.0.0.1:54321",
        alias="SUPABASE_URL",
        description="Base URL of the hosted backend project",
    )
    supabase_anon_key: Optional[str] = Field(
        None,
        alias="SUPABASE_ANON_KEY",
        description="Public anon key for the backend project",
    )
    media_bucket: str = Field(
        "post-media",
        description="Storage bucket for post photos and videos",
    )

    # Post lifecycle
    blood_expiry_hours: int = Field(
        5,
        ge=1,
        le=72,
        description="Hours until a blood post expires",
    )

    # Operational Parameters
    read_attempts: int = Field(
        1,
        ge=1,
        le=5,
        description="Attempts for idempotent reads on transient failures",
    )
    request_timeout: float = Field(
        30.0,
        gt=0,
        description="Overall HTTP timeout in seconds",
    )

    # CLI credentials
    community_email: Optional[str] = Field(
        None,
        alias="COMMUNITY_EMAIL",
        description="Default sign-in email for the CLI",
    )
    community_password: Optional[str] = Field(
        None,
        alias="COMMUNITY_PASSWORD",
        description="Default sign-in password for the CLI",
    )

    # Data Directory Configuration
    data_dir: Path = Field(
        Path("./data"),
        description="Base directory for local files (logs)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_to_file: bool = Field(
        default=True,
        description="Enable file logging in addition to console",
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (recommended for production)",
    )

    # Observability (OpenTelemetry)
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry distributed tracing",
    )
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OpenTelemetry OTLP endpoint for traces (e.g., http://localhost:4317)",
    )

    @field_validator("data_dir", mode="before")
    @classmethod
    def expand_data_dir(cls, v: str | Path) -> Path:
        """Expand and resolve data directory path."""
        return Path(v).expanduser().resolve()

    @field_validator("supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the project URL so paths can be appended."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("SUPABASE_URL must start with http:// or https://")
        return v

    @field_validator("supabase_anon_key")
    @classmethod
    def validate_anon_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate anon key format when provided."""
        if v is not None and len(v) < 10:
            raise ValueError("Supabase anon key must be at least 10 characters")
        return v

    @model_validator(mode="after")
    def apply_environment_profile(self) -> "Settings":
        """Apply environment-specific defaults.

        Profiles:
            - PRODUCTION: INFO logging, JSON logs, tracing enabled
            - DEVELOPMENT: DEBUG logging, tracing disabled
            - TESTING: ERROR logging, no file logging, no tracing
            - STAGING: INFO logging, JSON logs, tracing enabled

        Returns:
            Modified settings instance with environment-specific adjustments
        """
        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        elif self.environment == Environment.DEVELOPMENT:
            self.log_level = "DEBUG"
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.TESTING:
            self.log_level = "ERROR"
            self.log_to_file = False
            self.log_json = False
            self.enable_tracing = False

        elif self.environment == Environment.STAGING:
            self.log_level = "INFO"
            self.log_json = True
            self.enable_tracing = True

        return self

    @property
    def rest_url(self) -> str:
        """Get PostgREST base URL."""
        return f"{self.supabase_url}/rest/v1"

    @property
    def storage_url(self) -> str:
        """Get storage API base URL."""
        return f"{self.supabase_url}/storage/v1"

    @property
    def auth_url(self) -> str:
        """Get auth API base URL."""
        return f"{self.supabase_url}/auth/v1"

    @property
    def log_file(self) -> Path | None:
        """Get log file path, or None when file logging is off."""
        if not self.log_to_file:
            return None
        return self.data_dir / "communityconnect.log"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == Environment.TESTING

    @property
    def has_credentials(self) -> bool:
        """Check if CLI sign-in credentials are configured."""
        return self.community_email is not None and self.community_password is not None

    def redact_key(self, key: Optional[str] = None) -> str:
        """Redact the anon key (or another secret) for logging.

        Args:
            key: Secret to redact (defaults to supabase_anon_key)

        Returns:
            Redacted key string
        """
        return redact_token(key or self.supabase_anon_key)


def get_settings() -> Settings:
    """Build a fresh settings instance from the current environment."""
    return Settings()  # type: ignore[call-arg]


# Default settings instance
settings = get_settings()
