"""Identity gateway: accounts, password credentials and bearer tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jose import JWTError
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from waypost.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from waypost.db.time import utcnow
from waypost.models import Identity
from waypost.platform.errors import AuthError, InvalidTokenError, PermissionDeniedError

if TYPE_CHECKING:
    from waypost.platform.backend import PlatformBackend

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class AuthUser:
    """Public view of an identity."""

    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)
    email_confirmed_at: str | None = None
    created_at: str | None = None

    @classmethod
    def from_model(cls, identity: Identity) -> AuthUser:
        row = identity.to_row()
        return cls(
            id=row["id"],
            email=row["email"],
            user_metadata=row["user_metadata"],
            email_confirmed_at=row["email_confirmed_at"],
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class AuthSession:
    """A signed-in identity together with its bearer token."""

    access_token: str
    user: AuthUser
    expires_in: int
    token_type: str = "bearer"


def _normalise_email(email: str) -> str:
    return email.strip().lower()


def _validate_credentials(email: str, password: str) -> str:
    normalised = _normalise_email(email or "")
    if not normalised or "@" not in normalised:
        raise AuthError("Unable to validate email address: invalid format")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
    return normalised


class IdentityGateway:
    """Issues and validates tokens and manages identities.

    Admin operations are only available to a client connected with the
    service credential.
    """

    def __init__(self, backend: PlatformBackend, *, privileged: bool = False) -> None:
        self._backend = backend
        self.privileged = privileged
        # Identity signed in through this client; restricted writes act as it.
        self.session_user_id: str | None = None

    def require_actor(self, owner_id: str) -> None:
        """Allow a write on rows owned by ``owner_id``.

        Privileged clients may write any row; restricted clients only their
        own signed-in identity's rows.
        """
        if self.privileged:
            return
        if self.session_user_id is None:
            raise PermissionDeniedError("Not signed in")
        if owner_id != self.session_user_id:
            raise PermissionDeniedError("Not allowed to modify another user's data")

    # -- tokens -----------------------------------------------------------

    def _issue_session(self, user: AuthUser) -> AuthSession:
        token = create_access_token(
            user.id,
            self._backend.service_key,
            algorithm=self._backend.jwt_algorithm,
            expires_minutes=self._backend.access_token_expire_minutes,
            extra_claims={"email": user.email},
        )
        return AuthSession(
            access_token=token,
            user=user,
            expires_in=self._backend.access_token_expire_minutes * 60,
        )

    def _decode(self, token: str) -> dict[str, Any]:
        try:
            payload = decode_access_token(
                token,
                self._backend.service_key,
                algorithm=self._backend.jwt_algorithm,
            )
        except JWTError as exc:
            raise InvalidTokenError("Invalid token") from exc
        if self._backend.is_revoked(str(payload.get("jti"))):
            raise InvalidTokenError("Token has been revoked")
        return payload

    async def get_user(self, token: str) -> AuthUser:
        """Resolve a bearer token to its identity."""
        payload = self._decode(token)
        subject = str(payload["sub"])

        def _load(session: Session) -> AuthUser | None:
            identity = session.get(Identity, subject)
            return AuthUser.from_model(identity) if identity else None

        user = await self._backend.run(_load)
        if user is None:
            raise InvalidTokenError("User from token no longer exists")
        return user

    async def sign_out(self, token: str) -> None:
        """Revoke ``token``; later lookups with it fail."""
        payload = self._decode(token)
        self._backend.revoke(str(payload.get("jti")), payload.get("exp"))
        if self.session_user_id == str(payload["sub"]):
            self.session_user_id = None

    async def restore_session(self, token: str) -> AuthUser:
        """Resolve ``token`` and act as its identity from now on."""
        user = await self.get_user(token)
        self.session_user_id = user.id
        return user

    # -- end-user flows ---------------------------------------------------

    async def _create_identity(
        self,
        email: str,
        password: str,
        *,
        confirmed: bool,
        metadata: dict[str, Any] | None = None,
    ) -> AuthUser:
        normalised = _validate_credentials(email, password)
        password_hash = hash_password(password)

        def _create(session: Session) -> AuthUser:
            existing = session.scalar(select(Identity).where(Identity.email == normalised))
            if existing is not None:
                raise AuthError("A user with this email address has already been registered")
            identity = Identity(
                email=normalised,
                password_hash=password_hash,
                email_confirmed_at=utcnow() if confirmed else None,
                user_metadata=dict(metadata or {}),
            )
            session.add(identity)
            session.flush()
            return AuthUser.from_model(identity)

        user = await self._backend.run(_create)
        logger.info("Created identity %s", user.id)
        return user

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any] | None = None,
    ) -> AuthSession:
        """Register a new identity and return a signed-in session."""
        user = await self._create_identity(email, password, confirmed=True, metadata=metadata)
        self.session_user_id = user.id
        return self._issue_session(user)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for a session."""
        normalised = _normalise_email(email or "")

        def _load(session: Session) -> tuple[AuthUser, str] | None:
            identity = session.scalar(select(Identity).where(Identity.email == normalised))
            if identity is None:
                return None
            return AuthUser.from_model(identity), identity.password_hash

        found = await self._backend.run(_load)
        if found is None or not verify_password(password or "", found[1]):
            raise AuthError("Invalid login credentials")
        self.session_user_id = found[0].id
        return self._issue_session(found[0])

    # -- admin ------------------------------------------------------------

    def _require_privileged(self) -> None:
        if not self.privileged:
            raise PermissionDeniedError("User not allowed")

    async def admin_create_user(
        self,
        email: str,
        password: str,
        *,
        email_confirm: bool = False,
        metadata: dict[str, Any] | None = None,
    ) -> AuthUser:
        """Create an identity without signing it in."""
        self._require_privileged()
        return await self._create_identity(
            email,
            password,
            confirmed=email_confirm,
            metadata=metadata,
        )

    async def admin_list_users(self) -> list[AuthUser]:
        self._require_privileged()

        def _list(session: Session) -> list[AuthUser]:
            identities = session.scalars(select(Identity).order_by(Identity.created_at))
            return [AuthUser.from_model(identity) for identity in identities]

        return await self._backend.run(_list)

    async def admin_delete_user(self, user_id: str) -> None:
        """Delete an identity; the store cascades to its profile and messages."""
        self._require_privileged()

        def _delete(session: Session) -> int:
            result = session.execute(delete(Identity).where(Identity.id == user_id))
            return int(result.rowcount or 0)

        deleted = await self._backend.run(_delete)
        if not deleted:
            raise AuthError("User not found")
        logger.info("Deleted identity %s", user_id)
