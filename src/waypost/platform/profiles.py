"""Profile store: one mutable row per identity."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from waypost.db.time import utcnow
from waypost.models import (
    PRESENCE_OFFLINE,
    PRESENCE_ONLINE,
    ROLE_ADMIN,
    ROLE_MEMBER,
    Profile,
)
from waypost.platform.errors import PermissionDeniedError, StoreError
from waypost.platform.realtime import ChangeEvent, ChangeType

if TYPE_CHECKING:
    from waypost.platform.backend import PlatformBackend
    from waypost.platform.identity import IdentityGateway

TABLE = "profiles"
PROFILE_COLUMNS = ("id", "username", "avatar_url", "location", "updated_at", "status", "role")
MUTABLE_COLUMNS = frozenset({"username", "avatar_url", "location", "updated_at", "status", "role"})
PRESENCE_VALUES = frozenset({PRESENCE_ONLINE, PRESENCE_OFFLINE})
ROLE_VALUES = frozenset({ROLE_ADMIN, ROLE_MEMBER})


def coerce_timestamp(value: Any) -> datetime:
    """Parse a datetime or ISO-8601 string into an aware UTC datetime."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as exc:
            raise StoreError(f"invalid input syntax for type timestamp: {value!r}") from exc
    if not isinstance(value, datetime):
        raise StoreError(f"invalid timestamp value: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _coerce_location(value: Any) -> dict[str, float] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise StoreError("location must be an object with latitude and longitude")
    try:
        return {
            "latitude": float(value["latitude"]),
            "longitude": float(value["longitude"]),
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise StoreError("location must be an object with latitude and longitude") from exc


def _clean_values(values: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(values) - MUTABLE_COLUMNS
    if unknown:
        raise StoreError(f"Unknown profile columns: {', '.join(sorted(unknown))}")

    cleaned = dict(values)
    if "username" in cleaned and not str(cleaned["username"] or "").strip():
        raise StoreError('null value in column "username" violates not-null constraint')
    if "status" in cleaned and cleaned["status"] not in PRESENCE_VALUES:
        raise StoreError(f"Invalid presence status: {cleaned['status']!r}")
    if "role" in cleaned and cleaned["role"] not in ROLE_VALUES:
        raise StoreError(f"Invalid role: {cleaned['role']!r}")
    if "location" in cleaned:
        cleaned["location"] = _coerce_location(cleaned["location"])
    if "updated_at" in cleaned:
        cleaned["updated_at"] = coerce_timestamp(cleaned["updated_at"])
    return cleaned


def _project(row: dict[str, Any], columns: Iterable[str] | None) -> dict[str, Any]:
    if columns is None:
        return row
    return {column: row[column] for column in columns}


class ProfileStore:
    """Async access to the ``profiles`` table with change publication."""

    def __init__(self, backend: PlatformBackend, auth: IdentityGateway) -> None:
        self._backend = backend
        self._auth = auth

    async def get(self, profile_id: str) -> dict[str, Any] | None:
        def _get(session: Session) -> dict[str, Any] | None:
            profile = session.get(Profile, profile_id)
            return profile.to_row() if profile else None

        return await self._backend.run(_get)

    async def list(
        self,
        *,
        exclude_id: str | None = None,
        columns: Iterable[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return every profile, optionally excluding one id and projecting columns."""
        selected = tuple(columns) if columns is not None else None
        if selected is not None:
            unknown = set(selected) - set(PROFILE_COLUMNS)
            if unknown:
                raise StoreError(f"Unknown profile columns: {', '.join(sorted(unknown))}")

        def _list(session: Session) -> list[dict[str, Any]]:
            query = select(Profile).order_by(Profile.username, Profile.id)
            if exclude_id is not None:
                query = query.where(Profile.id != exclude_id)
            return [_project(profile.to_row(), selected) for profile in session.scalars(query)]

        return await self._backend.run(_list)

    async def insert(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a profile; ``id`` must reference an existing identity."""
        values = dict(row)
        profile_id = values.pop("id", None)
        if not profile_id:
            raise StoreError('null value in column "id" violates not-null constraint')
        if "username" not in values:
            raise StoreError('null value in column "username" violates not-null constraint')
        self._auth.require_actor(profile_id)
        if values.get("role", ROLE_MEMBER) != ROLE_MEMBER and not self._auth.privileged:
            raise PermissionDeniedError("Not allowed to change role")
        cleaned = _clean_values(values)
        cleaned.setdefault("status", PRESENCE_OFFLINE)
        cleaned.setdefault("role", ROLE_MEMBER)
        cleaned.setdefault("updated_at", utcnow())

        def _insert(session: Session) -> dict[str, Any]:
            if session.get(Profile, profile_id) is not None:
                raise StoreError(
                    'duplicate key value violates unique constraint "profiles_pkey"'
                )
            profile = Profile(id=profile_id, **cleaned)
            session.add(profile)
            session.flush()
            return profile.to_row()

        created = await self._backend.run(_insert)
        await self._backend.changes.publish(ChangeEvent(TABLE, ChangeType.INSERT, created))
        return created

    async def update(self, profile_id: str, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Apply ``values`` in one write; return the new row or None when no row matched."""
        pending = dict(values)
        if "id" in pending:
            if pending.pop("id") != profile_id:
                raise StoreError("Profile id is immutable")
        if not pending:
            raise StoreError("No columns to update")
        self._auth.require_actor(profile_id)
        if "role" in pending and not self._auth.privileged:
            raise PermissionDeniedError("Not allowed to change role")
        cleaned = _clean_values(pending)

        def _update(session: Session) -> tuple[dict[str, Any], dict[str, Any]] | None:
            profile = session.get(Profile, profile_id)
            if profile is None:
                return None
            old = profile.to_row()
            for column, value in cleaned.items():
                setattr(profile, column, value)
            session.flush()
            return old, profile.to_row()

        result = await self._backend.run(_update)
        if result is None:
            return None
        old, new = result
        await self._backend.changes.publish(ChangeEvent(TABLE, ChangeType.UPDATE, new, old))
        return new
