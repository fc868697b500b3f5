"""
Application configuration via Pydantic Settings.

All values are sourced from environment variables or an .env file.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import BeforeValidator, Field, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _parse_cors_origins(value: str | list[str]) -> list[str]:
    """Accept comma-separated string or list for CORS origins."""
    if isinstance(value, list):
        return value
    return [origin.strip() for origin in value.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Centralised, type-validated application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="JsonMaster", description="Human-readable application name")
    app_version: str = Field(default="1.0.0", description="Semantic version string")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )
    debug: bool = Field(default=False, description="Enable debug mode. Must be False in production.")

    # ── Server ─────────────────────────────────────────────────────────── #
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=10000, ge=1, le=65535, description="Bind port")

    # ── CORS ───────────────────────────────────────────────────────────── #
    cors_origins: Annotated[list[str], NoDecode, BeforeValidator(_parse_cors_origins)] = Field(
        default=["*"],
        description="Comma-separated list of allowed CORS origins",
    )

    # ── Uploads ────────────────────────────────────────────────────────── #
    max_upload_size_mb: int = Field(
        default=2048,
        ge=1,
        description="Maximum size of a single uploaded file in MB",
    )

    # ── Streaming comparison ───────────────────────────────────────────── #
    stream_queue_capacity: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Batches buffered between the token walker and the response",
    )
    stream_batch_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Diff messages per delivered batch",
    )
    stream_read_chunk_bytes: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Read size used by the JSON tokenizer",
    )

    # ── Text diff ──────────────────────────────────────────────────────── #
    text_page_size_default: int = Field(default=100, ge=1, le=10_000)
    text_line_display_max: int = Field(
        default=1000,
        ge=10,
        description="Characters shown per line before truncation",
    )
    text_session_ttl_seconds: int = Field(
        default=3600,
        ge=10,
        description="Lifetime of a cached text diff session",
    )
    text_session_max_entries: int = Field(default=128, ge=1, le=10_000)

    # ── Reports ────────────────────────────────────────────────────────── #
    report_dir: Path = Field(
        default=Path("./reports"),
        description="Directory for generated diff reports",
    )

    # ── Rate Limiting ──────────────────────────────────────────────────── #
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_default: str = Field(
        default="100/minute",
        description="Default rate limit string (slowapi format)",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    # ── Validators ─────────────────────────────────────────────────────── #

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION and self.debug:
            raise ValueError("debug must be False in production")
        return self

    @model_validator(mode="after")
    def ensure_directories_exist(self) -> Settings:
        """Create the report directory if it does not exist."""
        self.report_dir.mkdir(parents=True, exist_ok=True)
        return self

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return the cached Settings singleton.

    Use dependency injection in FastAPI routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
