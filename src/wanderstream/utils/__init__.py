"""Utility functions and helpers for Wanderstream.

This module contains shared utilities including logging setup,
custom exceptions, and environment handling.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    # Type imports for better IDE support
    from .logging import setup_logging, get_logger
    from .exceptions import (
        WanderstreamError,
        ConfigurationError,
        StreamError,
        FrameDecodeError,
        TransportError,
        RateLimitError,
    )

__all__ = [
    "setup_logging",
    "get_logger",
    "WanderstreamError",
    "ConfigurationError",
    "StreamError",
    "FrameDecodeError",
    "TransportError",
    "RateLimitError",
]
