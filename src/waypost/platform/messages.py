"""Message store: append-only direct messages with a one-way read flag."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from waypost.db.time import utcnow
from waypost.models import Message
from waypost.platform.errors import StoreError
from waypost.platform.profiles import coerce_timestamp
from waypost.platform.realtime import ChangeEvent, ChangeType

if TYPE_CHECKING:
    from waypost.platform.backend import PlatformBackend
    from waypost.platform.identity import IdentityGateway

TABLE = "messages"


class MessageStore:
    """Async access to the ``messages`` table with change publication."""

    def __init__(self, backend: PlatformBackend, auth: IdentityGateway) -> None:
        self._backend = backend
        self._auth = auth

    async def conversation(self, first_id: str, second_id: str) -> list[dict[str, Any]]:
        """Return every message between two profiles, oldest first."""

        def _fetch(session: Session) -> list[dict[str, Any]]:
            query = (
                select(Message)
                .where(
                    or_(
                        and_(Message.sender_id == first_id, Message.receiver_id == second_id),
                        and_(Message.sender_id == second_id, Message.receiver_id == first_id),
                    )
                )
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            return [message.to_row() for message in session.scalars(query)]

        return await self._backend.run(_fetch)

    async def insert(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Append a message; the id is assigned by the store."""
        sender_id = row.get("sender_id")
        receiver_id = row.get("receiver_id")
        content = row.get("content")
        if not sender_id or not receiver_id:
            raise StoreError("Messages require sender_id and receiver_id")
        if not isinstance(content, str) or not content.strip():
            raise StoreError("Message content must not be empty")
        self._auth.require_actor(sender_id)
        created_at = row.get("created_at")
        created = coerce_timestamp(created_at) if created_at is not None else utcnow()
        read = bool(row.get("read", False))

        def _insert(session: Session) -> dict[str, Any]:
            message = Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                created_at=created,
                read=read,
            )
            session.add(message)
            session.flush()
            return message.to_row()

        inserted = await self._backend.run(_insert)
        await self._backend.changes.publish(ChangeEvent(TABLE, ChangeType.INSERT, inserted))
        return inserted

    async def mark_read(self, message_ids: Iterable[int], reader_id: str) -> list[dict[str, Any]]:
        """Flip ``read`` to true on the given messages addressed to ``reader_id``.

        Messages sent by someone else to a different receiver, and messages
        already read, are left untouched. Returns the rows that changed.
        """
        ids = [int(message_id) for message_id in message_ids]
        if not ids:
            return []
        self._auth.require_actor(reader_id)

        def _mark(session: Session) -> list[tuple[dict[str, Any], dict[str, Any]]]:
            query = select(Message).where(
                Message.id.in_(ids),
                Message.receiver_id == reader_id,
                Message.read.is_(False),
            )
            changed = []
            for message in session.scalars(query):
                old = message.to_row()
                message.read = True
                changed.append((old, message.to_row()))
            session.flush()
            return changed

        changed = await self._backend.run(_mark)
        for old, new in changed:
            await self._backend.changes.publish(ChangeEvent(TABLE, ChangeType.UPDATE, new, old))
        return [new for _, new in changed]
