"""Mapping from a finished session's domain to the view that renders it."""

from typing import Optional
from urllib.parse import urlencode

from wanderstream.streaming.session import DomainType

DOMAIN_ROUTES = {
    DomainType.GENERAL: "/itinerary",
    DomainType.ITINERARY: "/itinerary",
    DomainType.ACCOMMODATION: "/hotels",
    DomainType.DINING: "/restaurants",
    DomainType.ACTIVITIES: "/activities",
}


def get_domain_route(
    domain: DomainType,
    session_id: Optional[str] = None,
    city: Optional[str] = None,
) -> str:
    """Build the redirect target for a completed session.

    Args:
        domain: Domain the session ended in.
        session_id: Session to deep-link to.
        city: City name to pass along.

    Returns:
        Route path with ``sessionId``, ``cityName`` and ``domain`` query
        parameters for the values given.
    """
    domain = DomainType.from_value(domain) or DomainType.GENERAL
    base_route = DOMAIN_ROUTES.get(domain, "/itinerary")

    params = []
    if session_id:
        params.append(("sessionId", session_id))
    if city:
        params.append(("cityName", city))
    params.append(("domain", domain.value))

    return f"{base_route}?{urlencode(params)}"
