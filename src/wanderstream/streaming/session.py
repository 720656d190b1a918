"""Streaming session state.

A session's ``data`` is a tagged union whose variant follows the active
conversational domain: city results for ``general``/``itinerary``, and one
collection-holding variant per pivot domain.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)


class DomainType(str, Enum):
    """Active conversational intent."""

    GENERAL = "general"
    ITINERARY = "itinerary"
    ACCOMMODATION = "accommodation"
    DINING = "dining"
    ACTIVITIES = "activities"

    @classmethod
    def from_value(cls, value: Any) -> Optional["DomainType"]:
        """Return the domain named by ``value``, or None if unknown."""
        if isinstance(value, str):
            value = value.lower()
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_city(self) -> bool:
        return self in (DomainType.GENERAL, DomainType.ITINERARY)


class StreamPhase(str, Enum):
    """Lifecycle of one streamed response."""

    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


def empty_itinerary() -> Dict[str, Any]:
    return {"itinerary_name": "", "overall_description": "", "points_of_interest": []}


class CityResultData(BaseModel):
    """City overview, points of interest and itinerary."""

    model_config = ConfigDict(extra="allow")

    domain: Literal["general", "itinerary"] = "general"
    session_id: Optional[str] = None
    general_city_data: Optional[Any] = None
    points_of_interest: Optional[List[Any]] = None
    itinerary_response: Optional[Any] = None


class AccommodationData(BaseModel):
    model_config = ConfigDict(extra="allow")

    domain: Literal["accommodation"] = "accommodation"
    session_id: Optional[str] = None
    hotels: List[Any] = Field(default_factory=list)


class DiningData(BaseModel):
    model_config = ConfigDict(extra="allow")

    domain: Literal["dining"] = "dining"
    session_id: Optional[str] = None
    restaurants: List[Any] = Field(default_factory=list)


class ActivitiesData(BaseModel):
    model_config = ConfigDict(extra="allow")

    domain: Literal["activities"] = "activities"
    session_id: Optional[str] = None
    activities: List[Any] = Field(default_factory=list)


SessionData = Annotated[
    Union[CityResultData, AccommodationData, DiningData, ActivitiesData],
    Field(discriminator="domain"),
]

# Collection field held by each pivot variant
COLLECTION_FIELDS = {
    DomainType.ACCOMMODATION: "hotels",
    DomainType.DINING: "restaurants",
    DomainType.ACTIVITIES: "activities",
}


def empty_data_for(domain: DomainType, session_id: Optional[str] = None) -> SessionData:
    """Build the empty data variant matching ``domain``.

    Args:
        domain: Domain the data must belong to.
        session_id: Session identifier to stamp on the data.

    Returns:
        A fresh data object of the right variant.
    """
    if domain == DomainType.ACCOMMODATION:
        return AccommodationData(session_id=session_id)
    if domain == DomainType.DINING:
        return DiningData(session_id=session_id)
    if domain == DomainType.ACTIVITIES:
        return ActivitiesData(session_id=session_id)
    return CityResultData(domain=domain.value, session_id=session_id)


def data_matches_domain(data: SessionData, domain: DomainType) -> bool:
    if isinstance(data, CityResultData):
        return domain.is_city
    return data.domain == domain.value


class Session(BaseModel):
    """Mutable state of one streamed chat response.

    The assembler mutates a single instance while the stream runs and hands
    deep copies to consumers.
    """

    session_id: str = ""
    domain: DomainType = DomainType.GENERAL
    city: Optional[str] = None
    data: SessionData = Field(default_factory=CityResultData)
    is_complete: bool = False
    error: Optional[str] = None
    phase: StreamPhase = StreamPhase.IDLE
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def set_domain(self, domain: DomainType) -> None:
        """Switch domain, replacing ``data`` if its variant no longer fits.

        Moving between ``general`` and ``itinerary`` keeps the city results
        and only retags them.
        """
        self.domain = domain
        if data_matches_domain(self.data, domain):
            if isinstance(self.data, CityResultData):
                self.data.domain = domain.value
            return
        logger.debug(f"Replacing {self.data.domain} data for domain {domain.value}")
        self.data = empty_data_for(domain, self.session_id or None)

    def snapshot(self) -> "Session":
        """Deep copy safe to hand to consumers."""
        return self.model_copy(deep=True)

    def data_dict(self) -> Dict[str, Any]:
        """Wire-shaped result data.

        City results omit the ``domain`` tag; pivot results carry it, as in
        ``{"hotels": [...], "domain": "accommodation", "session_id": ...}``.
        """
        if isinstance(self.data, CityResultData):
            return self.data.model_dump(exclude_none=True, exclude={"domain"})
        return self.data.model_dump(exclude_none=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "domain": self.domain.value,
            "city": self.city,
            "data": self.data_dict(),
            "isComplete": self.is_complete,
            "error": self.error,
        }


def create_streaming_session(domain: DomainType = DomainType.GENERAL) -> Session:
    """Create an idle session for ``domain`` with empty data."""
    return Session(domain=domain, data=empty_data_for(domain))
