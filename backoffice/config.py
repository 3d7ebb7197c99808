"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

GIB = 1024 * 1024 * 1024
_MIN_SECRET_LENGTH = 32


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = True

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_title: str = "Back-office API"
    api_version: str = "0.1.0"
    api_description: str = "Contact forms, blog, files, reports and support tickets"
    allowed_origins: str = "http://localhost:4321"

    # Identity provider - credentials are HS256 JWTs signed with separate secrets
    SESSION_JWT_SECRET: str = ""
    ACCESS_TOKEN_SECRET: str = ""
    jwt_issuer: str = "backoffice-api"
    access_token_ttl_minutes: int = 60
    session_ttl_days: int = 14  # Long-lived session credential

    # Quotas
    ticket_quota_scope: Literal["user", "project"] = "user"
    default_monthly_ticket_limit: int = 2
    default_storage_limit_bytes: int = 5 * GIB
    admin_storage_limit_bytes: int = 30 * GIB
    signed_url_ttl_seconds: int = 15 * 60

    # Object storage (S3-compatible)
    storage_bucket: str = ""
    storage_endpoint: str | None = None
    storage_region: str = "us-east-1"
    storage_access_key_id: str | None = None
    storage_secret_access_key: str | None = None
    storage_public_base_url: str = ""

    # Mail (AWS SES)
    aws_ses_region: str = "us-east-1"
    mail_from_email: str = ""
    mail_from_name: str = ""

    # Company information used in emails and AI prompts
    company_name: str = "Digital Agency"
    company_email: str = "contact@example.com"
    company_address: str = ""
    company_phone: str = ""
    website_url: str = "https://example.com"
    logo_url: str = ""
    linkedin_url: str = ""
    github_url: str = ""
    instagram_url: str = ""
    youtube_url: str = ""
    company_description: str = "Leading provider of innovative solutions"
    company_services: str = "consulting,development,support"
    company_values: str = "quality,innovation,trust"
    company_tone: Literal["formal", "friendly", "professional", "casual"] = "professional"

    # AI reply generation
    ai_enabled: bool = False
    DEFAULT_AI_PROVIDER: str = ""
    OPENAI_API_KEY: str = ""
    openai_model: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    GOOGLE_AI_API_KEY: str = ""
    gemini_model: str = "gemini-2.0-flash"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "backoffice-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start with a missing database or weak signing secrets.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if len(self.SESSION_JWT_SECRET) < _MIN_SECRET_LENGTH:
            errors.append(f"SESSION_JWT_SECRET must be at least {_MIN_SECRET_LENGTH} characters")
        if len(self.ACCESS_TOKEN_SECRET) < _MIN_SECRET_LENGTH:
            errors.append(f"ACCESS_TOKEN_SECRET must be at least {_MIN_SECRET_LENGTH} characters")
        if self.SESSION_JWT_SECRET and self.SESSION_JWT_SECRET == self.ACCESS_TOKEN_SECRET:
            errors.append("SESSION_JWT_SECRET and ACCESS_TOKEN_SECRET must differ")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def allowed_origins_list(self) -> list[str]:
        """CORS origins from the comma-separated ALLOWED_ORIGINS value."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def mail_sender_name(self) -> str:
        return self.mail_from_name or self.company_name


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
