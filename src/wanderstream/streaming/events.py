"""Stream event models for the unified chat stream.

Every SSE ``data:`` frame carries one JSON object with a ``type`` field
naming the event. Control events (``start``, ``complete``, ``error``) steer
the session; ``chunk`` events carry a fragment of one channel's JSON
document; the channel-named events carry that channel's value whole.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Known stream event types."""

    START = "start"
    CHUNK = "chunk"
    CITY_DATA = "city_data"
    GENERAL_POIS = "general_pois"
    ITINERARY = "itinerary"
    HOTELS = "hotels"
    RESTAURANTS = "restaurants"
    ACTIVITIES = "activities"
    NEARBY = "nearby"
    COMPLETE = "complete"
    ERROR = "error"


class ChannelName(str, Enum):
    """Logical sub-documents multiplexed within a single stream."""

    GENERAL_POIS = "general_pois"
    ITINERARY = "itinerary"
    CITY_DATA = "city_data"
    HOTELS = "hotels"
    RESTAURANTS = "restaurants"
    ACTIVITIES = "activities"

    @classmethod
    def from_value(cls, value: Any) -> Optional["ChannelName"]:
        """Return the channel for ``value`` or None if it names no channel."""
        try:
            return cls(value)
        except ValueError:
            return None


# Event types whose payload is a channel value delivered whole
DIRECT_CHANNEL_EVENTS = {
    EventType.CITY_DATA: ChannelName.CITY_DATA,
    EventType.GENERAL_POIS: ChannelName.GENERAL_POIS,
    EventType.ITINERARY: ChannelName.ITINERARY,
    EventType.HOTELS: ChannelName.HOTELS,
    EventType.RESTAURANTS: ChannelName.RESTAURANTS,
    EventType.ACTIVITIES: ChannelName.ACTIVITIES,
}


class ChunkPayload(BaseModel):
    """Payload of a ``chunk`` event."""

    model_config = ConfigDict(extra="ignore")

    chunk: str = ""
    part: Optional[str] = None

    @property
    def channel(self) -> Optional[ChannelName]:
        """The channel this fragment belongs to, if it is a known one."""
        return ChannelName.from_value(self.part)


class StartPayload(BaseModel):
    """Payload of a ``start`` event."""

    model_config = ConfigDict(extra="ignore")

    session_id: Optional[str] = None
    domain: Optional[str] = None
    city: Optional[str] = None


class StreamEvent(BaseModel):
    """One decoded SSE frame.

    ``type`` is kept as a plain string so that event types added upstream
    decode cleanly and can be logged and skipped.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., min_length=1)
    data: Optional[Any] = None
    error: Optional[str] = None

    @property
    def event_type(self) -> Optional[EventType]:
        """The known event type, or None for unrecognised types."""
        try:
            return EventType(self.type)
        except ValueError:
            return None

    def chunk_payload(self) -> Optional[ChunkPayload]:
        """Interpret ``data`` as a chunk payload.

        Returns:
            The payload, or None when ``data`` is not an object.
        """
        if not isinstance(self.data, dict):
            return None
        return ChunkPayload.model_validate(self.data)

    def start_payload(self) -> StartPayload:
        """Interpret ``data`` as a start payload (empty when absent)."""
        if not isinstance(self.data, dict):
            return StartPayload()
        return StartPayload.model_validate(self.data)
