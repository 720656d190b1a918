"""Classification of streaming errors into user-facing messages.

Upstream ``error`` events and transport failures arrive as free text. They
are sorted into broad categories so callers can decide on retries and show
a readable message while keeping the original text for logs.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from wanderstream.streaming.events import EventType


class ErrorCategory(Enum):
    """Broad causes of a failed stream."""

    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    VALIDATION = "validation"
    SERVER = "server"
    UNKNOWN = "unknown"


@dataclass
class ParsedError:
    """A classified streaming error."""

    category: ErrorCategory
    user_message: str
    technical_message: str
    can_retry: bool = True
    retry_after: Optional[int] = None
    error_code: Optional[str] = None


DEFAULT_RETRY_AFTER = 60

_RETRY_IN = re.compile(r"retry in (\d+\.?\d*)s", re.IGNORECASE)


def parse_stream_error(error: str) -> ParsedError:
    """Classify an error message.

    Args:
        error: Error text from an ``error`` event or an exception.

    Returns:
        The classified error.
    """
    lowered = error.lower()

    if any(
        marker in lowered
        for marker in ("429", "resource_exhausted", "quota", "rate limit")
    ):
        match = _RETRY_IN.search(error)
        retry_after = math.ceil(float(match.group(1))) if match else DEFAULT_RETRY_AFTER
        return ParsedError(
            category=ErrorCategory.RATE_LIMIT,
            user_message=f"AI service is busy. Please try again in {retry_after} seconds.",
            technical_message=error,
            retry_after=retry_after,
            error_code="429",
        )

    if any(
        marker in lowered for marker in ("network", "fetch", "connection", "timeout")
    ):
        return ParsedError(
            category=ErrorCategory.NETWORK,
            user_message="Connection issue. Please check your internet and try again.",
            technical_message=error,
        )

    if any(marker in lowered for marker in ("invalid", "validation", "parse")):
        return ParsedError(
            category=ErrorCategory.VALIDATION,
            user_message="There was an issue processing your request. Please try again.",
            technical_message=error,
        )

    if any(marker in lowered for marker in ("500", "internal", "server error")):
        return ParsedError(
            category=ErrorCategory.SERVER,
            user_message="Server error. Our team has been notified.",
            technical_message=error,
        )

    return ParsedError(
        category=ErrorCategory.UNKNOWN,
        user_message="Something went wrong. Please try again.",
        technical_message=error,
    )


def is_valid_stream_event(event: Any) -> bool:
    """Check that a raw event carries the fields its type needs.

    Args:
        event: A decoded JSON value.

    Returns:
        True if the event has a string ``type``, error events carry
        ``error`` and chunk/itinerary events carry ``data``.
    """
    if not isinstance(event, dict):
        return False

    event_type = event.get("type")
    if not isinstance(event_type, str):
        return False

    if event_type == EventType.ERROR.value and "error" not in event:
        return False

    if event_type in (EventType.CHUNK.value, EventType.ITINERARY.value):
        return "data" in event

    return True
