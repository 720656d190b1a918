"""Configuration schema definitions for Wanderstream.

This module defines Pydantic models for validating and parsing
the YAML configuration file.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


class APIConfig(BaseModel):
    """Configuration for the streaming chat API.

    The request timeout is enforced by the HTTP client; when it fires the
    stream is closed and the assembler observes an ordinary stream end.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    base_url: str = Field(
        default="http://localhost:8000/api/v1",
        description="Base URL of the recommendation API",
        min_length=1,
    )
    request_timeout: float = Field(
        default=120.0,
        gt=0.0,
        le=3600.0,
        description="Request-level timeout in seconds for a streaming chat",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Connection timeout in seconds",
    )
    free_endpoint: bool = Field(
        default=False,
        description="Use the unauthenticated free streaming endpoint",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop any trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")


class RateLimitConfig(BaseModel):
    """Configuration for the client-side rate limiter.

    Only endpoints containing ``prompt-response`` are limited.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool = Field(default=True, description="Apply client-side rate limiting")
    max_requests: int = Field(
        default=20, ge=1, le=1000, description="Requests allowed per window"
    )
    window_seconds: float = Field(
        default=60.0, gt=0.0, description="Length of the rate limit window"
    )
    retry_after_seconds: float = Field(
        default=3.0,
        ge=0.0,
        description="Suggested pause before retrying after a refusal",
    )


class StorageConfig(BaseModel):
    """Configuration for completed-session persistence."""

    model_config = ConfigDict(str_strip_whitespace=True)

    enabled: bool = Field(default=True, description="Persist completed sessions")
    directory: str = Field(
        default=".wanderstream",
        min_length=1,
        description="Directory holding persisted session files",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    model_config = ConfigDict(str_strip_whitespace=True)

    level: str = Field(
        default="WARNING",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Console logging level",
    )
    directory: Optional[str] = Field(
        default=None, description="Directory for log files (defaults to ./logs)"
    )


class Config(BaseModel):
    """Root configuration model for Wanderstream.

    Every section is optional in the YAML file and falls back to defaults.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    api: APIConfig = Field(default_factory=APIConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
