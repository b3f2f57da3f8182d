"""Presence and location sync for one signed-in client.

:class:`LocationSync` samples the device position on a fixed interval and
writes it to the signed-in user's profile. Alongside, it keeps a
:class:`LocationCache` of every other user's last-known location and
presence, seeded by one full fetch and then kept current from profile
``UPDATE`` events. Views never touch the cache directly: they take snapshots
and read :class:`CacheDiff` messages from a queue obtained with
:meth:`LocationCache.subscribe`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from waypost.client.policy import best_effort
from waypost.client.session import ClientSession
from waypost.db.time import utcnow
from waypost.models import PRESENCE_ONLINE
from waypost.platform import ChangeEvent, ChangeType, PlatformClient, PlatformError, Subscription

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL_SECONDS = 60.0
CACHE_COLUMNS = ("id", "username", "avatar_url", "location", "status")

GEOLOCATION_UNSUPPORTED = "Geolocation is not supported"
LOCATION_WRITE_FAILED = "Failed to update location"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_value(cls, value: Mapping[str, Any] | None) -> Coordinates | None:
        if not value:
            return None
        return cls(latitude=float(value["latitude"]), longitude=float(value["longitude"]))


class GeolocationError(Exception):
    """Raised by a geolocation provider when a position cannot be obtained."""


class GeolocationProvider(Protocol):
    async def current_position(self) -> Coordinates:
        """Return the device position or raise :class:`GeolocationError`."""
        ...


class StaticGeolocation:
    """Provider reporting a fixed position; useful for kiosks, scripts and tests."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self.position = Coordinates(latitude, longitude)

    async def current_position(self) -> Coordinates:
        return self.position


@dataclass(frozen=True)
class UserLocation:
    """Cached view of another user's profile."""

    id: str
    username: str
    avatar_url: str | None
    location: Coordinates | None
    status: str

    @property
    def is_online(self) -> bool:
        return self.status == PRESENCE_ONLINE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> UserLocation:
        return cls(
            id=str(row["id"]),
            username=str(row.get("username") or ""),
            avatar_url=row.get("avatar_url"),
            location=Coordinates.from_value(row.get("location")),
            status=str(row.get("status") or ""),
        )


@dataclass(frozen=True)
class CacheDiff:
    """One change to the cache: ``reset`` carries every entry, others one entry."""

    kind: str
    entries: tuple[UserLocation, ...]


class LocationCache:
    """Ordered map of profile id to last observed :class:`UserLocation`."""

    def __init__(self) -> None:
        self._entries: dict[str, UserLocation] = {}
        self._queues: list[asyncio.Queue[CacheDiff]] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._entries

    def get(self, profile_id: str) -> UserLocation | None:
        return self._entries.get(profile_id)

    def snapshot(self) -> list[UserLocation]:
        return list(self._entries.values())

    def subscribe(self) -> asyncio.Queue[CacheDiff]:
        queue: asyncio.Queue[CacheDiff] = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[CacheDiff]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def _publish(self, diff: CacheDiff) -> None:
        for queue in self._queues:
            queue.put_nowait(diff)

    def seed(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self._entries = {}
        for row in rows:
            entry = UserLocation.from_row(row)
            self._entries[entry.id] = entry
        self._publish(CacheDiff("reset", tuple(self._entries.values())))

    def apply_update(self, row: Mapping[str, Any], own_id: str) -> CacheDiff | None:
        """Apply an updated profile row.

        Known ids are replaced in place. Unknown ids are appended unless they
        belong to the signed-in user. Last writer wins; no ordering check.
        """
        entry = UserLocation.from_row(row)
        if entry.id in self._entries:
            diff = CacheDiff("replaced", (entry,))
        elif entry.id != own_id:
            diff = CacheDiff("added", (entry,))
        else:
            return None
        self._entries[entry.id] = entry
        self._publish(diff)
        return diff


def sort_for_display(entries: Iterable[UserLocation], search: str = "") -> list[UserLocation]:
    """Filter by username substring and list online users first, then by name."""
    needle = search.strip().lower()
    matching = [entry for entry in entries if needle in entry.username.lower()]
    return sorted(matching, key=lambda entry: (not entry.is_online, entry.username.lower()))


class LocationSync:
    """Publishes this device's location and mirrors everyone else's."""

    def __init__(
        self,
        platform: PlatformClient,
        session: ClientSession,
        geolocation: GeolocationProvider | None,
        *,
        interval: float = DEFAULT_SAMPLE_INTERVAL_SECONDS,
    ) -> None:
        self.platform = platform
        self.session = session
        self.geolocation = geolocation
        self.interval = max(0.01, float(interval))
        self.cache = LocationCache()
        self.position: Coordinates | None = None
        self.error: str | None = None
        self.loading = True
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._subscription: Subscription | None = None
        self._own_id: str | None = None
        self._closed = False
        self._seeded = False
        self._early_updates: list[dict[str, Any]] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Begin mirroring and sampling for the signed-in user.

        The profile subscription is registered first and the cache is seeded
        right after, without waiting for a position fix. Sampling runs in the
        background; its first sample is taken immediately.
        """
        self._own_id = self.session.user_id
        self._closed = False
        self._seeded = False
        self._early_updates = []
        self._stopping.clear()

        self._subscription = self.platform.changes.subscribe(
            "profiles",
            ChangeType.UPDATE,
            self._on_profile_update,
            name="profile-changes",
        )

        if self.geolocation is None:
            self.error = GEOLOCATION_UNSUPPORTED
            self.loading = False
        elif self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

        await self._seed_cache()

    async def stop(self) -> None:
        """Tear down the timer and the subscription."""
        self._closed = True
        self._stopping.set()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._task is not None:
            # A pending position request may never answer.
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            await self.sample_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except TimeoutError:
                continue

    async def sample_once(self) -> None:
        """Take one position sample and write it to the profile."""
        if self.geolocation is None or self._closed:
            return
        try:
            position = await self.geolocation.current_position()
        except Exception as exc:
            if not isinstance(exc, GeolocationError):
                logger.warning("Geolocation provider failed: %s", exc, exc_info=True)
            if not self._closed:
                self.error = f"Error getting location: {exc}"
                self.loading = False
            return
        if self._closed:
            return

        self.position = position
        self.loading = False
        written = await best_effort(
            self.platform.profiles.update(
                self._own_id or self.session.user_id,
                {"location": position.as_dict(), "updated_at": utcnow()},
            ),
            "Updating location",
        )
        if not written and not self._closed:
            self.error = LOCATION_WRITE_FAILED

    async def _seed_cache(self) -> None:
        try:
            rows = await self.platform.profiles.list(
                exclude_id=self._own_id,
                columns=CACHE_COLUMNS,
            )
        except PlatformError as exc:
            logger.error("Error fetching user locations: %s", exc)
            rows = []
        if self._closed:
            return
        self.cache.seed(rows)
        self._seeded = True
        # Updates that raced the list query are replayed on top of it.
        early, self._early_updates = self._early_updates, []
        for row in early:
            self.cache.apply_update(row, self._own_id or "")

    def _on_profile_update(self, event: ChangeEvent) -> None:
        if self._closed or self._own_id is None:
            return
        if not self._seeded:
            self._early_updates.append(event.new)
            return
        self.cache.apply_update(event.new, self._own_id)
