"""Client-side components: session, presence and location sync, chat, admin API client."""

from .admin import AdminApiClient
from .errors import (
    AdminApiError,
    AvatarTooLargeError,
    ClientError,
    NotAuthenticatedError,
    ProfileCreationError,
)
from .messaging import ChatMessage, Conversation
from .presence import (
    CacheDiff,
    Coordinates,
    GeolocationError,
    GeolocationProvider,
    LocationCache,
    LocationSync,
    StaticGeolocation,
    UserLocation,
    sort_for_display,
)
from .session import AuthEvent, ClientSession

__all__ = [
    "AdminApiClient",
    "AdminApiError", "AvatarTooLargeError", "ClientError",
    "NotAuthenticatedError", "ProfileCreationError",
    "ChatMessage", "Conversation",
    "CacheDiff", "Coordinates", "GeolocationError", "GeolocationProvider",
    "LocationCache", "LocationSync", "StaticGeolocation", "UserLocation",
    "sort_for_display",
    "AuthEvent", "ClientSession",
]
