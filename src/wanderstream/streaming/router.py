"""Routing of completed channel values into the session's result data.

City-shaped channels (``city_data``, ``general_pois``, ``itinerary``) fill
slots of the city results while the conversation is in the ``general`` or
``itinerary`` domain. The pivot channels (``hotels``, ``restaurants``,
``activities``) switch the domain and replace the result data wholesale.
The ``nearby`` payload refines the current results without changing the
domain.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from wanderstream.streaming.events import ChannelName
from wanderstream.streaming.merge import merge_unique_by_id
from wanderstream.streaming.session import (
    COLLECTION_FIELDS,
    AccommodationData,
    ActivitiesData,
    CityResultData,
    DiningData,
    DomainType,
    Session,
    empty_itinerary,
)
from wanderstream.utils.logging import get_logger

logger = get_logger(__name__)

NEARBY = "nearby"

# Reserved keys of the data variants; never taken from a payload
_RESERVED_KEYS = {"domain", "session_id"}


def extract_collection(value: Any, key: str) -> List[Any]:
    """Pull a list out of a channel payload.

    Accepts ``{key: [...]}`` as well as a bare list. Anything else,
    including a missing or non-list field, yields an empty list.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        items = value.get(key)
        if isinstance(items, list):
            return items
        if items is not None:
            logger.warning(f"Ignoring non-list '{key}' in payload ({type(items).__name__})")
    return []


class DomainRouter:
    """Applies completed channel values to a session.

    ``route`` is identical for values reconstructed from fragments and for
    values delivered whole in a single event.
    """

    def __init__(self):
        self._handlers: Dict[ChannelName, Callable[[Any, Session], None]] = {
            ChannelName.CITY_DATA: self._route_city_data,
            ChannelName.GENERAL_POIS: self._route_general_pois,
            ChannelName.ITINERARY: self._route_itinerary,
            ChannelName.HOTELS: self._route_hotels,
            ChannelName.RESTAURANTS: self._route_restaurants,
            ChannelName.ACTIVITIES: self._route_activities,
        }
        missing = set(ChannelName) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No route for channels: {sorted(c.value for c in missing)}")

    def route(self, channel: Union[ChannelName, str], value: Any, session: Session) -> None:
        """Apply ``value`` from ``channel`` to ``session.data``.

        Args:
            channel: Channel name, or ``"nearby"`` for the nearby payload.
            value: The completed JSON value.
            session: Session to mutate.

        Raises:
            ValueError: If ``channel`` names no known channel.
        """
        if channel == NEARBY:
            self.route_nearby(value, session)
            return

        resolved = ChannelName.from_value(channel)
        if resolved is None:
            raise ValueError(f"Unknown channel: {channel!r}")

        self._handlers[resolved](value, session)

    def _city_data(self, session: Session, channel: ChannelName) -> Optional[CityResultData]:
        if not session.domain.is_city:
            logger.debug(
                f"Ignoring {channel.value} value in {session.domain.value} domain"
            )
            return None
        return session.data

    def _route_city_data(self, value: Any, session: Session) -> None:
        data = self._city_data(session, ChannelName.CITY_DATA)
        if data is None:
            return

        if data.general_city_data is None:
            # First city data of the session fixes the shape for later updates
            data.general_city_data = value
            data.points_of_interest = []
            data.itinerary_response = empty_itinerary()
            data.session_id = session.session_id
        else:
            data.general_city_data = value

    def _route_general_pois(self, value: Any, session: Session) -> None:
        data = self._city_data(session, ChannelName.GENERAL_POIS)
        if data is None:
            return
        data.points_of_interest = extract_collection(value, "points_of_interest")

    def _route_itinerary(self, value: Any, session: Session) -> None:
        data = self._city_data(session, ChannelName.ITINERARY)
        if data is None:
            return
        data.itinerary_response = value

    def _route_hotels(self, value: Any, session: Session) -> None:
        session.domain = DomainType.ACCOMMODATION
        session.data = AccommodationData(
            hotels=extract_collection(value, "hotels"),
            session_id=session.session_id,
        )

    def _route_restaurants(self, value: Any, session: Session) -> None:
        session.domain = DomainType.DINING
        session.data = DiningData(
            restaurants=extract_collection(value, "restaurants"),
            session_id=session.session_id,
        )

    def _route_activities(self, value: Any, session: Session) -> None:
        session.domain = DomainType.ACTIVITIES
        session.data = ActivitiesData(
            activities=extract_collection(value, "activities"),
            session_id=session.session_id,
        )

    def route_nearby(self, value: Any, session: Session) -> None:
        """Replace the result data with a nearby payload, keeping the domain.

        Fields present in the payload replace the current ones, fields it
        lacks are carried over, and the domain's item collection is merged
        with the one already held so that no place is lost or duplicated.

        Args:
            value: The nearby payload object.
            session: Session to mutate.
        """
        payload = value if isinstance(value, dict) else {}
        previous = session.data
        if session.domain.is_city:
            collection_field = "points_of_interest"
        else:
            collection_field = COLLECTION_FIELDS[session.domain]

        fields = {
            k: v
            for k, v in previous.model_dump(exclude=_RESERVED_KEYS).items()
            if v is not None
        }
        fields.update({k: v for k, v in payload.items() if k not in _RESERVED_KEYS})
        fields[collection_field] = merge_unique_by_id(
            getattr(previous, collection_field, None) or [],
            extract_collection(payload, collection_field),
        )

        session.data = type(previous)(
            domain=previous.domain, session_id=session.session_id, **fields
        )
