"""Environment variable schema definitions for Wanderstream.

This module defines a Pydantic settings model for validating environment
variables and applying them on top of the file configuration.
"""

from typing import Optional, Dict, Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from wanderstream.config.models import Config


class EnvironmentConfig(BaseSettings):
    """Environment configuration using Pydantic settings.

    Values set here take precedence over the YAML configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    api_token: Optional[str] = Field(
        None,
        alias="WANDERSTREAM_API_TOKEN",
        description="Bearer token for authenticated streaming endpoints",
    )
    api_base_url: Optional[str] = Field(
        None,
        alias="WANDERSTREAM_API_BASE_URL",
        description="Override for the API base URL",
    )
    request_timeout: Optional[float] = Field(
        None,
        alias="WANDERSTREAM_REQUEST_TIMEOUT",
        description="Override for the request timeout in seconds",
        gt=0,
    )
    log_level: Optional[str] = Field(
        None,
        alias="WANDERSTREAM_LOG_LEVEL",
        description="Logging level",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    log_dir: Optional[str] = Field(
        None,
        alias="WANDERSTREAM_LOG_DIR",
        description="Directory for log files",
    )
    storage_dir: Optional[str] = Field(
        None,
        alias="WANDERSTREAM_STORAGE_DIR",
        description="Directory for persisted sessions",
    )

    def apply_to(self, config: Config) -> Config:
        """Return a copy of ``config`` with environment overrides applied.

        Args:
            config: Configuration loaded from file or defaults.

        Returns:
            New configuration object; the input is not modified.
        """
        updated = config.model_copy(deep=True)
        if self.api_base_url:
            updated.api = updated.api.model_validate(
                {**updated.api.model_dump(), "base_url": self.api_base_url}
            )
        if self.request_timeout:
            updated.api.request_timeout = self.request_timeout
        if self.log_level:
            updated.logging.level = self.log_level
        if self.log_dir:
            updated.logging.directory = self.log_dir
        if self.storage_dir:
            updated.storage.directory = self.storage_dir
        return updated

    def mask_sensitive_values(self) -> Dict[str, Any]:
        """Get configuration with the token masked.

        Returns:
            Dictionary with configuration values, token masked.
        """
        config = self.model_dump()
        value = config.get("api_token")
        if value:
            if len(value) > 8:
                config["api_token"] = f"{'*' * (len(value) - 4)}{value[-4:]}"
            else:
                config["api_token"] = "****"
        return config
