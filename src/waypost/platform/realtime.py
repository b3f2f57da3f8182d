"""In-process change-notification channel.

Stores publish a :class:`ChangeEvent` after each committed insert or update.
Subscribers declare a table, an event type and an optional row predicate and
receive every matching event. Delivery happens on the publisher's event
loop; a subscriber that raises is logged and skipped so that one faulty view
never breaks the write that triggered it.
"""

from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Row = dict[str, Any]
RowPredicate = Callable[[Row], bool]
ChangeCallback = Callable[["ChangeEvent"], Awaitable[None] | None]


class ChangeType(str, Enum):
    """Row-level change kinds a subscription can listen for."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed row change."""

    table: str
    type: ChangeType
    new: Row
    old: Row | None = None


@dataclass(eq=False)
class Subscription:
    """Handle for one registered listener."""

    id: int
    name: str
    table: str
    event: ChangeType
    callback: ChangeCallback
    predicate: RowPredicate | None = None
    active: bool = True
    _feed: ChangeFeed | None = field(default=None, repr=False)

    def matches(self, change: ChangeEvent) -> bool:
        if not self.active or change.table != self.table:
            return False
        if self.event is not ChangeType.ALL and change.type is not self.event:
            return False
        if self.predicate is None:
            return True
        return bool(self.predicate(change.new))

    def unsubscribe(self) -> None:
        """Stop delivery immediately, including events already being fanned out."""
        self.active = False
        if self._feed is not None:
            self._feed._remove(self)
            self._feed = None


class ChangeFeed:
    """Fan-out of committed row changes to subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._ids = itertools.count(1)

    @property
    def subscriptions(self) -> list[Subscription]:
        return [sub for sub in self._subscriptions if sub.active]

    def subscribe(
        self,
        table: str,
        event: ChangeType | str,
        callback: ChangeCallback,
        *,
        predicate: RowPredicate | None = None,
        name: str | None = None,
    ) -> Subscription:
        """Register ``callback`` for ``event`` changes on ``table``."""
        sub_id = next(self._ids)
        subscription = Subscription(
            id=sub_id,
            name=name or f"{table}-{sub_id}",
            table=table,
            event=ChangeType(event),
            callback=callback,
            predicate=predicate,
            _feed=self,
        )
        self._subscriptions.append(subscription)
        logger.debug("Subscribed %s to %s on %s", subscription.name, subscription.event.value, table)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Unsubscribed %s", subscription.name)

    async def publish(self, change: ChangeEvent) -> int:
        """Deliver ``change`` to every matching subscriber; return the delivery count."""
        delivered = 0
        for subscription in list(self._subscriptions):
            try:
                if not subscription.matches(change):
                    continue
                result = subscription.callback(change)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber %s failed handling %s on %s",
                    subscription.name,
                    change.type.value,
                    change.table,
                )
        return delivered
