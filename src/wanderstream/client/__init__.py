"""HTTP access to the recommendation API's streaming chat endpoints."""

from .chat_client import ChatStreamClient, chat_endpoint
from .rate_limiter import ClientRateLimiter, RateLimitDecision

__all__ = [
    "ChatStreamClient",
    "chat_endpoint",
    "ClientRateLimiter",
    "RateLimitDecision",
]
