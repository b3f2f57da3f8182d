# src/waypost/models/profile.py
"""Profile rows: the mutable, queryable side of an identity."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from waypost.db.session import Base
from waypost.db.time import isoformat, utcnow

PRESENCE_ONLINE = "online"
PRESENCE_OFFLINE = "offline"
ROLE_ADMIN = "admin"
ROLE_MEMBER = "member"


class Profile(Base):
    """One row per identity holding username, avatar, location and presence."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True,
    )
    username: Mapped[str] = mapped_column(Text, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # {"latitude": float, "longitude": float}
    location: Mapped[dict[str, float] | None] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PRESENCE_OFFLINE)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_MEMBER)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "location": dict(self.location) if self.location else None,
            "updated_at": isoformat(self.updated_at),
            "status": self.status,
            "role": self.role,
        }
