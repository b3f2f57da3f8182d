"""Fire-and-forget policy for writes whose failure must not reach the user."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TypeVar

from waypost.platform import PlatformError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def best_effort(operation: Awaitable[T], action: str) -> bool:
    """Await ``operation``; log a platform failure instead of raising it.

    Returns True when the write went through. Presence, read-marking, location
    and chat writes go through here; admin CRUD and sign-in do not.
    """
    try:
        await operation
    except PlatformError as exc:
        logger.warning("%s failed: %s", action, exc)
        return False
    return True
