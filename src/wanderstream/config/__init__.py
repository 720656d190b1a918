"""Configuration management for Wanderstream.

This module handles loading, parsing, and validating configuration
from YAML files and environment variables.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    # Type imports for better IDE support
    from .loader import ConfigLoader
    from .models import Config, APIConfig, RateLimitConfig, StorageConfig
    from .env_schema import EnvironmentConfig

__all__ = [
    "ConfigLoader",
    "Config",
    "APIConfig",
    "RateLimitConfig",
    "StorageConfig",
    "EnvironmentConfig",
]
