"""Shared configuration management for the document service.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-document-service",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Billing
    default_currency_symbol: str = Field(
        default="₦",
        description="Currency symbol used when a document carries none",
    )

    # Rendering
    document_renderer: Literal["pdf", "text"] = Field(
        default="pdf",
        description="Document renderer: pdf (reportlab, A4), text (plain text layout)",
    )
    render_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single background render",
        gt=0,
    )

    # Asset fetching (tenant logo / signature images)
    asset_base_url: str = Field(
        default="",
        description="Prefix for relative logo/signature paths returned by the backend",
    )
    asset_fetch_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for a single asset download",
        gt=0,
    )
    asset_max_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Assets larger than this are treated as unavailable",
        gt=0,
    )

    # Backend REST API
    backend_api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the invoicing backend API",
    )
    backend_timeout: float = Field(
        default=15.0,
        description="Timeout in seconds for backend API calls",
        gt=0,
    )

    # Storage configuration (S3-compatible object storage)
    storage_enabled: bool = Field(
        default=False,
        description="Store rendered documents in S3-compatible storage (MinIO)",
    )
    storage_endpoint: str = Field(
        default="localhost:9000",
        description="S3-compatible storage endpoint (host:port)",
    )
    storage_access_key: str = Field(
        default="",
        description="Storage access key (use env var APP_STORAGE_ACCESS_KEY)",
    )
    storage_secret_key: str = Field(
        default="",
        description="Storage secret key (use env var APP_STORAGE_SECRET_KEY)",
    )
    storage_bucket: str = Field(
        default="documents",
        description="Default bucket name for rendered documents",
    )
    storage_secure: bool = Field(
        default=False,
        description="Use HTTPS for storage connections",
    )

    # Background queue (arq + Redis)
    queue_enabled: bool = Field(
        default=False,
        description="Enable background rendering through the arq queue",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the job queue",
    )
    queue_max_jobs: int = Field(
        default=10,
        description="Maximum concurrent jobs per worker",
    )
    queue_job_timeout: int = Field(
        default=300,
        description="Job timeout in seconds",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
