"""Built-in platform: identity gateway, stores, change feed and blob store."""

from .backend import PlatformBackend, PlatformClient
from .errors import (
    AuthError,
    InvalidTokenError,
    PermissionDeniedError,
    PlatformError,
    StorageError,
    StoreError,
)
from .identity import AuthSession, AuthUser, IdentityGateway
from .messages import MessageStore
from .profiles import ProfileStore
from .realtime import ChangeEvent, ChangeFeed, ChangeType, Subscription
from .storage import BlobStore

__all__ = [
    "PlatformBackend", "PlatformClient",
    "PlatformError", "AuthError", "InvalidTokenError", "PermissionDeniedError",
    "StoreError", "StorageError",
    "AuthSession", "AuthUser", "IdentityGateway",
    "MessageStore", "ProfileStore",
    "ChangeEvent", "ChangeFeed", "ChangeType", "Subscription",
    "BlobStore",
]
