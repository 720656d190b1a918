"""Custom exceptions for Wanderstream.

This module defines application-specific exceptions for better
error handling and debugging.
"""

from typing import Optional, Any


class WanderstreamError(Exception):
    """Base exception for all Wanderstream errors.

    All custom exceptions in the application should inherit from this class
    to allow for easy catching of application-specific errors.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """Initialize the exception.

        Args:
            message: Error message.
            details: Optional dictionary with additional error details.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(WanderstreamError):
    """Raised when there's an error in configuration.

    This includes missing configuration files, invalid YAML syntax,
    missing required fields, or invalid field values.
    """

    pass


class StreamError(WanderstreamError):
    """Raised when a chat stream cannot be consumed."""

    pass


class FrameDecodeError(StreamError):
    """Raised when a single SSE data frame is not a valid stream event.

    The decoder logs and drops these; they never terminate a stream.
    """

    def __init__(
        self,
        message: str,
        raw: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize frame decode error.

        Args:
            message: Error message.
            raw: The raw payload of the offending frame.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.raw = raw


class TransportError(StreamError):
    """Raised when the HTTP transport fails or returns an unusable response.

    This includes connection drops while reading the body, request
    timeouts, and non-success status codes other than rate limiting.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize transport error.

        Args:
            message: Error message.
            status_code: HTTP status code, if a response was received.
            endpoint: Endpoint path that was requested.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.status_code = status_code
        self.endpoint = endpoint


class RateLimitError(WanderstreamError):
    """Raised when a request is refused by the client or server rate limit."""

    def __init__(
        self,
        message: str,
        retry_after: int,
        endpoint: str,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message.
            retry_after: Seconds to wait before retrying.
            endpoint: Endpoint that was rate limited.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.retry_after = retry_after
        self.endpoint = endpoint

