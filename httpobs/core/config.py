"""
Core configuration module for httpobs.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the HTTPOBS_ prefix.

Reference:
- Pydantic BaseSettings pattern with validated fields
- Singleton access through get_settings()
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_EXPORTERS = ("", "NOOP", "STDOUT", "CONSOLE", "OTLP", "OTLP_GRPC", "JAEGER")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the HTTPOBS_ prefix for environment variables.
    Example: HTTPOBS_OTEL_EXPORTER=otlp
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="httpobs",
        description="Name of the service, used as the OpenTelemetry resource name",
    )
    service_version: str = Field(
        default="1.0.0",
        description="Version reported in the tracer resource and /ping",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the service listens on",
    )
    build_commit_id: str = Field(
        default="",
        description="Commit hash reported by /ping",
    )
    build_time: str = Field(
        default="",
        description="Build timestamp reported by /ping",
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Renderer for structured log events",
    )

    # =========================================================================
    # Tracing Configuration
    # =========================================================================
    otel_exporter: str = Field(
        default="NOOP",
        description="Span exporter backend: NOOP, STDOUT, OTLP, OTLP_GRPC or JAEGER",
    )
    otel_jaeger_endpoint: str = Field(
        default="http://localhost:4318/v1/traces",
        description="Jaeger collector OTLP/HTTP receiver URL",
    )
    otel_otlp_endpoint: str = Field(
        default="http://localhost:4318/v1/traces",
        description="OTLP/HTTP collector URL",
    )
    otel_otlp_grpc_endpoint: str = Field(
        default="localhost:4317",
        description="OTLP/gRPC collector address",
    )
    otel_export_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=300.0,
        description="Timeout for one span export call",
    )

    # =========================================================================
    # Metrics Configuration
    # =========================================================================
    metrics_path: str = Field(
        default="/metrics",
        description="Path serving the Prometheus exposition format",
    )
    metrics_prefix: str = Field(
        default="",
        description="Prefix prepended to every registered metric name",
    )
    metrics_runtime_collectors: bool = Field(
        default=True,
        description="Register process, platform and GC collectors",
    )
    metrics_normalize_paths: bool = Field(
        default=False,
        description="Replace id-like path segments with {id} in metric labels",
    )

    # =========================================================================
    # Access Log Configuration
    # =========================================================================
    access_log_message: str = Field(
        default="incoming request log",
        description="Event name of every access-log record",
    )
    access_log_max_body_bytes: int = Field(
        default=1_000_000,
        ge=1,
        description="Response bodies this size or larger are logged as a placeholder",
    )
    access_log_skip_paths: list[str] = Field(
        default_factory=lambda: ["/metrics"],
        description="Paths excluded from access logging",
    )
    access_log_redact_headers: bool = Field(
        default=True,
        description="Redact credential headers in access-log records",
    )

    # =========================================================================
    # Environment Prefix Configuration
    # =========================================================================
    model_config = {
        "env_prefix": "HTTPOBS_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator("otel_exporter")
    @classmethod
    def validate_otel_exporter(cls, v: str) -> str:
        """Normalize the exporter name and reject unknown backends early."""
        normalized = v.strip().upper()
        if normalized not in VALID_EXPORTERS:
            raise ValueError(f"otel_exporter must be one of {VALID_EXPORTERS[1:]}")
        return normalized

    @field_validator("metrics_path")
    @classmethod
    def validate_metrics_path(cls, v: str) -> str:
        """Metrics path must be absolute."""
        if not v.startswith("/"):
            raise ValueError("metrics_path must start with '/'")
        return v


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Singleton settings instance.
    """
    return Settings()
