"""Wanderstream - Streaming Travel Recommendation Client.

A terminal client that consumes AI-generated travel recommendations
delivered as a chunked, multiplexed SSE stream and assembles them into
city, itinerary, hotel, restaurant and activity results.
"""

__version__ = "0.1.0"
__author__ = "Wanderstream Team"
__email__ = "team@wanderstream.dev"

# Package metadata
__all__ = [
    "__version__",
    "__author__",
    "__email__",
]
