# src/waypost/models/__init__.py
"""SQLAlchemy models for the Waypost platform tables."""

from .identity import Identity
from .message import Message
from .profile import (
    PRESENCE_OFFLINE,
    PRESENCE_ONLINE,
    ROLE_ADMIN,
    ROLE_MEMBER,
    Profile,
)

__all__ = [
    "Identity",
    "Message",
    "Profile",
    "PRESENCE_OFFLINE", "PRESENCE_ONLINE",
    "ROLE_ADMIN", "ROLE_MEMBER",
]
