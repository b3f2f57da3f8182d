"""Exceptions raised by the client-side session, sync and chat components."""


class ClientError(Exception):
    """Base exception for client component failures."""


class NotAuthenticatedError(ClientError):
    """Raised when an operation needs a signed-in session and there is none."""


class ProfileCreationError(ClientError):
    """Raised when sign-up created the identity but its profile insert failed."""

    def __init__(self, message: str, user_id: str) -> None:
        super().__init__(message)
        self.user_id = user_id


class AvatarTooLargeError(ClientError):
    """Raised when an avatar upload exceeds the configured size limit."""


class AdminApiError(ClientError):
    """Raised by the admin API client on a non-success response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
