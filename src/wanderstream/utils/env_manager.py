"""Environment variable management for Wanderstream.

This module provides loading of ``.env`` files and safe access to the
API token used to authenticate streaming requests.
"""

import os
import stat
import warnings
from pathlib import Path
from typing import Optional, Dict, Any

from dotenv import load_dotenv, find_dotenv

from wanderstream.utils.exceptions import ConfigurationError
from wanderstream.utils.logging import get_logger


logger = get_logger(__name__)


class EnvironmentManager:
    """Manages environment variables and the API token securely."""

    TOKEN_VAR = "WANDERSTREAM_API_TOKEN"

    # Optional environment variables
    OPTIONAL_VARS = {
        "WANDERSTREAM_API_BASE_URL": "http://localhost:8000/api/v1",
        "WANDERSTREAM_LOG_LEVEL": "WARNING",
        "WANDERSTREAM_LOG_DIR": "logs",
        "WANDERSTREAM_STORAGE_DIR": ".wanderstream",
    }

    def __init__(self, env_file: Optional[Path] = None, override: bool = True):
        """Initialize the environment manager.

        Args:
            env_file: Path to .env file. If None, searches for .env file.
            override: Whether to override existing environment variables.
        """
        self.env_file = env_file
        self.override = override
        self._loaded = False

    def load(self) -> None:
        """Load environment variables from file and system environment.

        Raises:
            ConfigurationError: If .env file is specified but not found.
        """
        if self._loaded:
            return

        if self.env_file:
            if not self.env_file.exists():
                raise ConfigurationError(
                    f"Environment file not found: {self.env_file}",
                    details={"path": str(self.env_file.absolute())},
                )
            load_dotenv(self.env_file, override=self.override)
            logger.info(f"Loaded environment from: {self.env_file}")
        else:
            env_path = find_dotenv(usecwd=True)
            if env_path:
                load_dotenv(env_path, override=self.override)
                logger.info(f"Loaded environment from: {env_path}")
                self.env_file = Path(env_path)
            else:
                logger.info("No .env file found, using system environment only")

        if self.env_file and self.env_file.exists():
            self._check_env_file_security()

        self._loaded = True

    def _check_env_file_security(self) -> None:
        """Warn if the .env file holding the token is world-readable."""
        try:
            mode = self.env_file.stat().st_mode
            if mode & stat.S_IROTH:
                warnings.warn(
                    f"Warning: {self.env_file} is world-readable. "
                    "Consider restricting permissions with: chmod 600 "
                    + str(self.env_file),
                    UserWarning,
                )
        except OSError as e:
            logger.debug(f"Could not check file permissions: {e}")

    def get_api_token(self) -> Optional[str]:
        """Get the bearer token for authenticated streaming endpoints.

        Returns:
            The token if set and non-empty, None otherwise.
        """
        self.load()
        token = os.getenv(self.TOKEN_VAR)
        if token is None or not token.strip():
            return None
        return token.strip()

    def mask_token(self, token: Optional[str]) -> str:
        """Mask a token for safe display.

        Args:
            token: Token to mask.

        Returns:
            Masked token showing only last 4 characters.
        """
        if not token:
            return "<not set>"

        if len(token) <= 8:
            return "****"

        return f"{'*' * (len(token) - 4)}{token[-4:]}"

    def get_status_report(self) -> Dict[str, Any]:
        """Get a status report of environment configuration.

        Returns:
            Dictionary with environment status information.
        """
        self.load()

        return {
            "env_file": str(self.env_file) if self.env_file else None,
            "api_token": self.mask_token(os.getenv(self.TOKEN_VAR)),
            "optional_vars": {
                var: os.getenv(var, default)
                for var, default in self.OPTIONAL_VARS.items()
            },
        }
