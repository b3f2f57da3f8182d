"""Shared state of the built-in platform and the client objects handed out.

A :class:`PlatformBackend` is created once per process. It owns the database
engine, the change feed, the blob root and the token revocation list.
Components never reach for it directly; they receive a
:class:`PlatformClient` from :meth:`PlatformBackend.connect`.
"""

from __future__ import annotations

import asyncio
import contextlib
import hmac
import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from waypost.db.session import build_engine, create_tables
from waypost.platform.errors import AuthError, PlatformError, StoreError
from waypost.platform.realtime import ChangeFeed

if TYPE_CHECKING:
    from waypost.core.settings import Settings
    from waypost.platform.identity import IdentityGateway
    from waypost.platform.messages import MessageStore
    from waypost.platform.profiles import ProfileStore
    from waypost.platform.storage import BlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class PlatformClient:
    """Dependency-injected handle bundling every platform collaborator."""

    auth: IdentityGateway
    profiles: ProfileStore
    messages: MessageStore
    changes: ChangeFeed
    storage: BlobStore
    privileged: bool = False


class PlatformBackend:
    """Process-wide owner of the platform's engine, change feed and blob root."""

    def __init__(
        self,
        *,
        database_url: str,
        service_key: str,
        public_key: str,
        base_url: str,
        storage_path: str | Path,
        jwt_algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        engine: Engine | None = None,
        echo: bool = False,
    ) -> None:
        self.engine = engine or build_engine(database_url, echo=echo)
        self.session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self.service_key = service_key
        self.public_key = public_key
        self.base_url = base_url.rstrip("/")
        self.storage_root = Path(storage_path)
        self.jwt_algorithm = jwt_algorithm
        self.access_token_expire_minutes = access_token_expire_minutes
        self.changes = ChangeFeed()
        # jti -> expiry (epoch seconds) of signed-out tokens
        self.revoked_tokens: dict[str, float] = {}
        # SQLite has a single writer; serialise work handed to worker threads.
        self._lock: threading.Lock | contextlib.nullcontext[None] = (
            threading.Lock()
            if self.engine.dialect.name == "sqlite"
            else contextlib.nullcontext()
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, engine: Engine | None = None) -> PlatformBackend:
        """Build a backend from application settings."""
        return cls(
            database_url=settings.database_url,
            service_key=settings.platform_service_key,
            public_key=settings.platform_public_key,
            base_url=settings.platform_url,
            storage_path=settings.storage_path,
            jwt_algorithm=settings.jwt_algorithm,
            access_token_expire_minutes=settings.access_token_expire_minutes,
            engine=engine,
            echo=settings.sql_debug,
        )

    def revoke(self, jti: str, expires_at: float | int | None) -> None:
        """Remember a signed-out token until it would have expired anyway."""
        self._prune_revoked()
        self.revoked_tokens[jti] = float(expires_at) if expires_at is not None else math.inf

    def is_revoked(self, jti: str) -> bool:
        return jti in self.revoked_tokens

    def _prune_revoked(self) -> None:
        now = time.time()
        for jti, expires_at in list(self.revoked_tokens.items()):
            if expires_at <= now:
                del self.revoked_tokens[jti]

    def create_tables(self) -> None:
        create_tables(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    def connect(self, api_key: str) -> PlatformClient:
        """Return a client for ``api_key``; the service key yields a privileged client."""
        from waypost.platform.identity import IdentityGateway
        from waypost.platform.messages import MessageStore
        from waypost.platform.profiles import ProfileStore
        from waypost.platform.storage import BlobStore

        if hmac.compare_digest(api_key, self.service_key):
            privileged = True
        elif hmac.compare_digest(api_key, self.public_key):
            privileged = False
        else:
            raise AuthError("Invalid API key")

        auth = IdentityGateway(self, privileged=privileged)
        return PlatformClient(
            auth=auth,
            profiles=ProfileStore(self, auth),
            messages=MessageStore(self, auth),
            changes=self.changes,
            storage=BlobStore(self.storage_root, self.base_url),
            privileged=privileged,
        )

    def _run_sync(self, work: Callable[[Session], T]) -> T:
        with self._lock, self.session_factory() as session:
            try:
                result = work(session)
                session.commit()
                return result
            except PlatformError:
                session.rollback()
                raise
            except IntegrityError as exc:
                session.rollback()
                raise StoreError(str(exc.orig)) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Database error: %s", exc)
                raise StoreError(str(exc)) from exc

    async def run(self, work: Callable[[Session], T]) -> T:
        """Run ``work`` in its own session on a worker thread and commit."""
        return await asyncio.to_thread(self._run_sync, work)
