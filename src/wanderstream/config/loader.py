"""Configuration loader for Wanderstream.

Reads the optional ``wanderstream.yml`` file and validates it into a
``Config``. Every failure surfaces as a ``ConfigurationError`` carrying the
file path, so the CLI can report it and exit.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from wanderstream.config.models import Config
from wanderstream.utils.exceptions import ConfigurationError
from wanderstream.utils.logging import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = Path("wanderstream.yml")


def format_validation_errors(error: ValidationError) -> str:
    """Render pydantic errors as ``section -> field: message`` lines."""
    lines = []
    for item in error.errors():
        loc = " -> ".join(str(part) for part in item["loc"])
        lines.append(f"{loc}: {item['msg']}")
    return "\n".join(lines)


class ConfigLoader:
    """Loads and validates configuration from a YAML file."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_FILE

    def load(self, missing_ok: bool = False) -> Config:
        """Load and validate the configuration file.

        Args:
            missing_ok: Return the default configuration when the file
                does not exist instead of raising.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not a
                YAML mapping, or fails validation.
        """
        if not self.config_path.exists():
            if missing_ok:
                logger.info(f"No configuration file at {self.config_path}, using defaults")
                return Config()
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}",
                details={"path": str(self.config_path.absolute())},
            )

        raw = self._read_mapping()
        try:
            config = Config(**raw)
        except ValidationError as e:
            raise ConfigurationError(
                "Configuration validation failed:\n" + format_validation_errors(e),
                details={"path": str(self.config_path), "errors": e.errors()},
            )

        logger.info(f"Configuration loaded from {self.config_path}: api={config.api.base_url}")
        return config

    def _read_mapping(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML syntax in configuration file: {e}",
                details={"path": str(self.config_path), "error": str(e)},
            )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read configuration: {e}",
                details={"path": str(self.config_path), "error_type": type(e).__name__},
            )

        if raw is None:
            raise ConfigurationError(
                "Configuration file is empty", details={"path": str(self.config_path)}
            )
        if not isinstance(raw, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping at the top level",
                details={"path": str(self.config_path)},
            )
        return raw
