from tripmap.providers.google_directions import (
    GoogleDirectionsProvider,
    close_directions_provider,
    get_directions_provider,
    parse_directions_payload,
)
from tripmap.providers.google_places import GooglePlacesProvider, close_places_provider, get_places_provider

__all__ = [
    "GoogleDirectionsProvider",
    "GooglePlacesProvider",
    "close_directions_provider",
    "close_places_provider",
    "get_directions_provider",
    "get_places_provider",
    "parse_directions_payload",
]
