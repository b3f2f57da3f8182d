"""Client session model: the signed-in identity and its bearer token.

A :class:`ClientSession` lives for one browser-like session. It reacts to
identity transitions (restore, sign-in, sign-out) and notifies listeners, and
it owns the profile operations that act on the signed-in user.
"""

from __future__ import annotations

import inspect
import logging
import secrets
from collections.abc import Awaitable, Callable
from enum import Enum
from pathlib import PurePosixPath
from typing import Any

from waypost.client.errors import (
    AvatarTooLargeError,
    NotAuthenticatedError,
    ProfileCreationError,
)
from waypost.client.policy import best_effort
from waypost.db.time import utcnow
from waypost.models import PRESENCE_OFFLINE, PRESENCE_ONLINE
from waypost.platform import AuthSession, AuthUser, PlatformClient, PlatformError

logger = logging.getLogger(__name__)

AVATAR_BUCKET = "avatars"
DEFAULT_AVATAR_MAX_BYTES = 5 * 1024 * 1024


class AuthEvent(str, Enum):
    """Identity transitions reported to listeners."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, "ClientSession"], Awaitable[None] | None]


class ClientSession:
    """Holds the current identity and token for one client."""

    def __init__(
        self,
        platform: PlatformClient,
        *,
        avatar_max_bytes: int = DEFAULT_AVATAR_MAX_BYTES,
    ) -> None:
        self.platform = platform
        self.avatar_max_bytes = avatar_max_bytes
        self.user: AuthUser | None = None
        self.access_token: str | None = None
        self._listeners: list[AuthListener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.access_token is not None

    @property
    def user_id(self) -> str:
        return self.require_user().id

    def require_user(self) -> AuthUser:
        if self.user is None:
            raise NotAuthenticatedError("User not authenticated")
        return self.user

    # -- listeners --------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            result = listener(event, self)
            if inspect.isawaitable(result):
                await result

    def _adopt(self, auth_session: AuthSession) -> None:
        self.user = auth_session.user
        self.access_token = auth_session.access_token

    def _clear(self) -> None:
        self.user = None
        self.access_token = None

    # -- transitions ------------------------------------------------------

    async def restore(self, access_token: str) -> AuthUser:
        """Resume a session from a stored token; raises if the token is no longer valid."""
        user = await self.platform.auth.restore_session(access_token)
        self.user = user
        self.access_token = access_token
        await self.set_presence(PRESENCE_ONLINE)
        await self._emit(AuthEvent.INITIAL_SESSION)
        return user

    async def sign_in(self, email: str, password: str) -> AuthUser:
        """Sign in with a password. Errors propagate to the caller."""
        auth_session = await self.platform.auth.sign_in_with_password(email, password)
        self._adopt(auth_session)
        await self.set_presence(PRESENCE_ONLINE)
        await self._emit(AuthEvent.SIGNED_IN)
        return auth_session.user

    async def sign_up(self, email: str, password: str, username: str) -> AuthUser:
        """Register, sign in and create the profile.

        The identity and profile writes are not atomic. A profile failure
        raises :class:`ProfileCreationError` and leaves the identity in
        place, since an end-user client cannot delete identities.
        """
        if not (username or "").strip():
            raise ValueError("Username is required")
        auth_session = await self.platform.auth.sign_up(
            email,
            password,
            metadata={"username": username},
        )
        self._adopt(auth_session)
        try:
            await self.platform.profiles.insert(
                {"id": auth_session.user.id, "username": username, "status": PRESENCE_ONLINE}
            )
        except PlatformError as exc:
            logger.error("Profile creation error: %s", exc)
            raise ProfileCreationError(str(exc), auth_session.user.id) from exc
        await self._emit(AuthEvent.SIGNED_IN)
        return auth_session.user

    async def sign_out(self) -> None:
        """Mark the profile offline, then end the session."""
        if self.user is None or self.access_token is None:
            return
        await self.set_presence(PRESENCE_OFFLINE)
        await best_effort(self.platform.auth.sign_out(self.access_token), "Sign-out")
        self._clear()
        await self._emit(AuthEvent.SIGNED_OUT)

    # -- profile ----------------------------------------------------------

    async def set_presence(self, status: str) -> bool:
        user = self.require_user()
        return await best_effort(
            self.platform.profiles.update(user.id, {"status": status}),
            f"Setting presence to {status}",
        )

    async def fetch_profile(self) -> dict[str, Any] | None:
        user = self.require_user()
        return await self.platform.profiles.get(user.id)

    async def update_profile(
        self,
        *,
        username: str | None = None,
        avatar_url: str | None = None,
    ) -> dict[str, Any] | None:
        """Update the signed-in user's username and/or avatar reference."""
        user = self.require_user()
        values: dict[str, Any] = {}
        if username is not None:
            if not username.strip():
                raise ValueError("Username is required")
            values["username"] = username
        if avatar_url is not None:
            values["avatar_url"] = avatar_url
        if not values:
            return await self.fetch_profile()
        values["updated_at"] = utcnow()
        updated = await self.platform.profiles.update(user.id, values)
        await self._emit(AuthEvent.USER_UPDATED)
        return updated

    async def upload_avatar(self, filename: str, data: bytes) -> str:
        """Store an avatar image and return its public URL."""
        user = self.require_user()
        if len(data) > self.avatar_max_bytes:
            limit_mb = self.avatar_max_bytes // (1024 * 1024)
            raise AvatarTooLargeError(f"Image size must be less than {limit_mb}MB")
        extension = PurePosixPath(filename).suffix.lstrip(".") or "bin"
        object_path = f"avatars/{user.id}-{secrets.token_hex(5)}.{extension}"
        await self.platform.storage.upload(AVATAR_BUCKET, object_path, data)
        return self.platform.storage.public_url(AVATAR_BUCKET, object_path)
