"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Stripe Configuration
    stripe_secret_key: str = Field(..., description="Stripe secret API key (sk_test_...)")
    stripe_webhook_secret: str = Field(..., description="Stripe webhook signing secret")
    stripe_api_version: str = Field(default="2023-10-16", description="Stripe API version")

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_socket_timeout: float = Field(
        default=5.0, description="Redis socket timeout (seconds)"
    )

    # Ledger
    ledger_namespace: str = Field(
        default="transactions", description="Prefix of the per-day transaction buckets"
    )
    reconcile_max_attempts: int = Field(
        default=3, ge=1, description="Attempts to find a record before dropping a status"
    )
    reconcile_retry_delay: float = Field(
        default=2.0, ge=0, description="Fixed delay between reconcile attempts (seconds)"
    )

    # Gateway calls
    provider_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for a single provider call (seconds)"
    )
    circuit_breaker_failure_threshold: int = Field(
        default=5, description="Provider failures before the circuit opens"
    )
    circuit_breaker_timeout: int = Field(
        default=60, description="Seconds before an open circuit is retried"
    )

    # Application Configuration
    app_name: str = Field(default="payment-orchestrator", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="API port")
    allowed_origins: str = Field(
        default="*",
        description="CORS allowed origins (comma-separated)"
    )
    correlation_header: str = Field(
        default="x-mgc-correlationId", description="Header carrying the caller correlation id"
    )
    webhook_max_body_bytes: int = Field(
        default=65536, description="Maximum accepted webhook body size"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_key(cls, v: str) -> str:
        """Validate that Stripe secret key starts with sk_test_ or sk_live_."""
        if not v.startswith("sk_test_") and not v.startswith("sk_live_"):
            raise ValueError(
                "Invalid Stripe secret key format. Must start with 'sk_test_' or 'sk_live_'"
            )
        return v

    @field_validator("stripe_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        """Validate the Stripe webhook signing secret prefix."""
        if not v.startswith("whsec_"):
            raise ValueError("Invalid Stripe webhook secret format. Must start with 'whsec_'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def is_test_mode(self) -> bool:
        """Check if using Stripe test mode."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
