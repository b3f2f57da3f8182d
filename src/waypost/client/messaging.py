"""Two-party conversation view over the message store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from waypost.client.policy import best_effort
from waypost.client.session import ClientSession
from waypost.db.time import utcnow
from waypost.platform import ChangeEvent, ChangeType, PlatformClient, PlatformError, Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    id: int
    sender_id: str
    receiver_id: str
    content: str
    created_at: str
    read: bool

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ChatMessage:
        return cls(
            id=int(row["id"]),
            sender_id=str(row["sender_id"]),
            receiver_id=str(row["receiver_id"]),
            content=str(row["content"]),
            created_at=str(row["created_at"]),
            read=bool(row.get("read", False)),
        )


def conversation_filter(first_id: str, second_id: str) -> Callable[[Mapping[str, Any]], bool]:
    """Row predicate matching messages between two profiles in either direction."""
    pair = {(first_id, second_id), (second_id, first_id)}

    def _matches(row: Mapping[str, Any]) -> bool:
        return (row.get("sender_id"), row.get("receiver_id")) in pair

    return _matches


class Conversation:
    """Ordered, live-updating message list between the signed-in user and a peer.

    Sent messages are not echoed locally; they appear when the store's own
    ``INSERT`` notification comes back through the subscription.
    """

    def __init__(self, platform: PlatformClient, session: ClientSession, peer_id: str) -> None:
        self.platform = platform
        self.session = session
        self.peer_id = peer_id
        self.messages: list[ChatMessage] = []
        self.draft = ""
        self.loading = True
        self._self_id: str | None = None
        self._subscription: Subscription | None = None
        self._queues: list[asyncio.Queue[ChatMessage]] = []
        self._closed = True
        self._history_loaded = False
        self._pending: list[ChatMessage] = []

    @property
    def is_open(self) -> bool:
        return not self._closed

    def updates(self) -> asyncio.Queue[ChatMessage]:
        """Return a queue that receives every message appended from now on."""
        queue: asyncio.Queue[ChatMessage] = asyncio.Queue()
        self._queues.append(queue)
        return queue

    async def open(self) -> None:
        """Follow new messages, load history, then mark the unread ones read.

        The subscription is made before the history query. Notifications that
        arrive while the query runs are held back and merged in by id once
        the history is in, so a message is neither lost nor shown twice.
        """
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._self_id = self.session.user_id
        self._closed = False
        self._history_loaded = False
        self._pending = []
        self._subscription = self.platform.changes.subscribe(
            "messages",
            ChangeType.INSERT,
            self._on_insert,
            predicate=conversation_filter(self._self_id, self.peer_id),
            name=f"new-messages-{self.peer_id}",
        )

        try:
            rows = await self.platform.messages.conversation(self._self_id, self.peer_id)
        except PlatformError as exc:
            logger.error("Error fetching messages: %s", exc)
            rows = []
        if self._closed:
            return

        self.messages = [ChatMessage.from_row(row) for row in rows]
        seen = {message.id for message in self.messages}
        for message in self._pending:
            if message.id not in seen:
                seen.add(message.id)
                self._append(message)
        self._pending = []
        self._history_loaded = True
        self.loading = False

        unread = [
            message.id
            for message in self.messages
            if message.receiver_id == self._self_id and not message.read
        ]
        if unread:
            await best_effort(
                self.platform.messages.mark_read(unread, self._self_id),
                "Marking messages read",
            )

    async def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._pending = []
        self._queues.clear()

    def _append(self, message: ChatMessage) -> None:
        self.messages.append(message)
        for queue in self._queues:
            queue.put_nowait(message)

    async def _on_insert(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        message = ChatMessage.from_row(event.new)
        if not self._history_loaded:
            self._pending.append(message)
            return
        if any(existing.id == message.id for existing in self.messages):
            return
        self._append(message)
        if message.receiver_id == self._self_id:
            await best_effort(
                self.platform.messages.mark_read([message.id], self._self_id),
                "Marking message read",
            )

    async def send(self, text: str) -> bool:
        """Insert ``text`` as a new message; blank input is ignored."""
        content = (text or "").strip()
        if not content or self._closed or self._self_id is None:
            return False
        return await best_effort(
            self.platform.messages.insert(
                {
                    "sender_id": self._self_id,
                    "receiver_id": self.peer_id,
                    "content": content,
                    "created_at": utcnow(),
                    "read": False,
                }
            ),
            "Sending message",
        )

    async def submit(self) -> bool:
        """Send the current draft and clear it whether or not the write succeeded."""
        if not self.draft.strip():
            return False
        try:
            return await self.send(self.draft)
        finally:
            self.draft = ""
