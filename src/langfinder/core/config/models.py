"""
Pydantic configuration models for langfinder.

These models provide type-safe configuration with validation for:
- GitHub API access
- Search orchestration limits
- HTTP server settings
- Logging
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class DetailFailurePolicy(str, Enum):
    """What to do when a single profile lookup fails."""

    ABORT = "abort"
    SKIP = "skip"


# =============================================================================
# GitHub Configuration
# =============================================================================


class GitHubConfig(BaseModel):
    """GitHub REST API connection settings."""

    api_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API",
    )
    token: str | None = Field(
        default=None,
        description="Fallback access token when a request carries none",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts per API call",
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier for retries",
    )
    retry_max_wait_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound on a single backoff wait",
    )
    max_connections: int = Field(
        default=100,
        ge=1,
        description="Connection pool size",
    )
    user_agent: str | None = Field(
        default=None,
        description="Custom User-Agent header",
    )

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalise the base URL so paths can be appended."""
        return v.rstrip("/")


# =============================================================================
# Search Configuration
# =============================================================================


class SearchConfig(BaseModel):
    """Limits applied to every search run."""

    default_count: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Records returned when the request does not say",
    )
    concurrency_limit: int = Field(
        default=1010,
        ge=1,
        description="Max API calls in flight across pages and profiles",
    )
    detail_failure_policy: DetailFailurePolicy = Field(
        default=DetailFailurePolicy.ABORT,
        description="abort the whole run or skip the user on a failed profile lookup",
    )
    run_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Overall deadline for one search run (none by default)",
    )


# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )
    rich_console: bool = Field(
        default=True,
        description="Use Rich for console output",
    )

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        """Reject level names the logging module does not know."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from app.yaml.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
