"""Exceptions raised by the platform collaborators.

Every failure of the identity gateway, the stores or the blob store surfaces
as a :class:`PlatformError` subclass carrying a human-readable message, the
same message the admin API passes through to its callers.
"""


class PlatformError(RuntimeError):
    """Base exception raised for platform-related failures."""


class AuthError(PlatformError):
    """Raised when the identity gateway rejects an operation."""


class InvalidTokenError(AuthError):
    """Raised when a bearer token is malformed, expired, revoked or orphaned."""


class PermissionDeniedError(AuthError):
    """Raised when a restricted client calls a privileged operation."""


class StoreError(PlatformError):
    """Raised when a profile or message store call fails."""


class StorageError(PlatformError):
    """Raised when a blob upload or download fails."""
