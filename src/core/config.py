"""
Core configuration module for the Task Manager API.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the TASK_MANAGER_ prefix
once at process start and stays fixed for the lifetime of the process.

Reference:
- Pydantic BaseSettings pattern
- Route classification tables for the authentication and rate-limit gates
"""

import secrets
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings


# =============================================================================
# Route Classification Defaults
# =============================================================================

DEFAULT_PUBLIC_ROUTES: frozenset[str] = frozenset(
    {
        "/",
        "/health",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/api/auth/sign-up",
        "/api/auth/login",
        "/api/auth/forgot-password",
        "/api/auth/reset-password",
        "/api/auth/verify-email",
        "/api/auth/resend-verification",
    }
)

DEFAULT_RATE_LIMITED_ROUTES: frozenset[str] = frozenset(
    {
        "/api/auth/login",
        "/api/auth/forgot-password",
        "/api/auth/reset-password",
        "/api/auth/verify-email",
        "/api/auth/resend-verification",
    }
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the TASK_MANAGER_ prefix for environment variables.
    Example: TASK_MANAGER_JWT_SECRET=change-me
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="task-manager",
        description="Name of the service for logging and identification",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the service listens on",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Allowed CORS origins outside development",
    )

    # =========================================================================
    # Bearer Token Configuration
    # Pattern: SecretStr masks the signing secret in logs/repr
    # =========================================================================
    jwt_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Symmetric secret used to sign and verify bearer tokens",
    )
    jwt_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        ge=60,
        description="Lifetime of issued bearer tokens in seconds",
    )

    # =========================================================================
    # Account Configuration
    # =========================================================================
    password_hash_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for stored password hashes",
    )
    verification_token_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        ge=60,
        description="Lifetime of email verification tokens in seconds",
    )
    password_reset_token_ttl_seconds: int = Field(
        default=10 * 60,
        ge=60,
        description="Lifetime of password reset tokens in seconds",
    )
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL used in links sent by email",
    )

    # =========================================================================
    # Rate Limiting Configuration
    # =========================================================================
    rate_limit_capacity: int = Field(
        default=1,
        ge=1,
        description="Token bucket capacity (burst size) per client",
    )
    rate_limit_refill_rate: float = Field(
        default=2.0,
        gt=0,
        description="Tokens added to each bucket per second",
    )
    rate_limit_idle_ttl_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Idle time after which a client's bucket may be evicted",
    )
    trust_forwarded_for: bool = Field(
        default=False,
        description="Use the first X-Forwarded-For hop as the client identity",
    )

    # =========================================================================
    # Route Classification
    # =========================================================================
    public_routes: frozenset[str] = Field(
        default=DEFAULT_PUBLIC_ROUTES,
        description="Exact paths that bypass authentication",
    )
    rate_limited_routes: frozenset[str] = Field(
        default=DEFAULT_RATE_LIMITED_ROUTES,
        description="Exact paths subject to per-client throttling",
    )

    model_config = {
        "env_prefix": "TASK_MANAGER_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def ensure_jwt_secret(self) -> "Settings":
        """
        Require a signing secret outside development.

        In development an ephemeral secret is generated so the service can
        start; tokens issued by one process are not valid in another.
        """
        if self.jwt_secret.get_secret_value():
            return self
        if self.environment != "development":
            raise ValueError("jwt_secret must be set outside development")
        self.jwt_secret = SecretStr(secrets.token_urlsafe(32))
        return self


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created,
    so the signing secret and limiter parameters stay fixed for the process.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
