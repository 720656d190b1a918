"""Client-side rate limiting for LLM prompt endpoints.

Requests are counted per normalized endpoint in fixed windows. The limiter
is consulted once before a stream is opened and never during assembly.
"""

import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

LIMITED_MARKER = "prompt-response"

_UUID_SEGMENT = re.compile(
    r"/[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}"
)
_NUMERIC_SEGMENT = re.compile(r"/\d+")


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    retry_after: Optional[int] = None


@dataclass
class _WindowRecord:
    started: float
    count: int


def endpoint_key(endpoint: str) -> str:
    """Normalize an endpoint so that id variations share one window.

    The query string is dropped, UUID and numeric path segments become
    ``/{id}`` and the result is lower-cased.
    """
    base = endpoint.split("?", 1)[0]
    base = _UUID_SEGMENT.sub("/{id}", base)
    base = _NUMERIC_SEGMENT.sub("/{id}", base)
    return base.lower()


class ClientRateLimiter:
    """Fixed-window request limiter keyed by normalized endpoint."""

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the limiter.

        Args:
            max_requests: Requests allowed per endpoint within one window.
            window_seconds: Window length in seconds.
            clock: Monotonic time source in seconds.
        """
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, _WindowRecord] = {}

    def check(self, endpoint: str) -> RateLimitDecision:
        """Record a request to ``endpoint`` if it is allowed.

        Args:
            endpoint: Endpoint path, optionally with a query string.

        Returns:
            The decision; refused requests carry ``retry_after`` in whole
            seconds until the window ends.
        """
        if LIMITED_MARKER not in endpoint:
            return RateLimitDecision(allowed=True)

        now = self._clock()
        key = endpoint_key(endpoint)
        self._prune(now)

        record = self._requests.get(key)
        if record is None or now - record.started >= self.window_seconds:
            self._requests[key] = _WindowRecord(started=now, count=1)
            return RateLimitDecision(allowed=True)

        if record.count >= self.max_requests:
            retry_after = math.ceil(self.window_seconds - (now - record.started))
            logger.warning(
                f"Rate limit exceeded for {endpoint}. Retry after {retry_after} seconds."
            )
            return RateLimitDecision(allowed=False, retry_after=retry_after)

        record.count += 1
        return RateLimitDecision(allowed=True)

    def _prune(self, now: float) -> None:
        expired = [
            key
            for key, record in self._requests.items()
            if now - record.started >= self.window_seconds * 2
        ]
        for key in expired:
            del self._requests[key]

    def usage_stats(self) -> Dict[str, Dict[str, object]]:
        """Per-key request counts and window expiry times."""
        now = self._clock()
        wall_now = datetime.now()
        stats = {}
        for key, record in self._requests.items():
            time_left = max(0.0, self.window_seconds - (now - record.started))
            stats[key] = {
                "count": record.count,
                "window_expiry": (wall_now + timedelta(seconds=time_left)).isoformat(),
            }
        return stats

    def reset(self) -> None:
        self._requests.clear()
